"""Command line interface for the job application tracker."""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout
from pydantic import ValidationError

from .attachments import (
    AttachmentReadError,
    AttachmentTooLargeError,
    SelectedFile,
    encode_attachment,
    save_attachment,
)
from .auth import AuthError, require_session, sign_in, sign_out
from .config import get_config, load_config
from .controller import ApplicationController, ApplicationError
from .dates import display_date
from .models import JobApplication, JobApplicationFormData, JobStatus, status_style
from .store import FirestoreStore

LOCK_DIR = Path("/tmp")
LOG_DIR = Path(__file__).parent.parent / "logs"
LOCK_TIMEOUT = 10

DELETE_PROMPT = (
    "Are you sure you want to delete this job application? "
    "This action cannot be undone. [y/N] "
)

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    """Configure logging for the application."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / "app.log"

    config = get_config()
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(log_file),
            # stdout carries command output
            logging.StreamHandler(sys.stderr),
        ],
    )


def format_row(app: JobApplication) -> str:
    """One table line for an application."""
    cv = "CV" if app.has_attachment else "-"
    link = app.job_link or "-"
    return (
        f"{app.id[:8]}  {app.company[:24]:<24}  {app.role[:28]:<28}  "
        f"{display_date(app.date_applied):<10}  {app.status.value:<12}  {cv:<3}  {link}"
    )


def print_table(apps: list[JobApplication], total: int) -> None:
    """Print the application table with its header line."""
    print(f"{total} applications tracked")
    if not apps:
        print("No applications found.")
        return
    print(
        f"{'ID':<8}  {'Company':<24}  {'Role':<28}  {'Applied':<10}  "
        f"{'Status':<12}  {'CV':<3}  Link"
    )
    for app in apps:
        print(format_row(app))


def print_detail(app: JobApplication) -> None:
    """Print the detail view of one application."""
    print(f"{app.company} - {app.role}")
    print(f"  Status:       {app.status.value} ({status_style(app.status)})")
    print(f"  Date applied: {display_date(app.date_applied)}")
    print(f"  Job link:     {app.job_link or 'No link provided'}")
    print(f"  CV:           {app.cv_file_name or 'No CV uploaded'}")
    print(f"  Notes:        {app.notes or 'No notes added.'}")
    print(f"  ID:           {app.id}")


def resolve_id(controller: ApplicationController, prefix: str) -> str:
    """Expand an id prefix to a single application id."""
    matches = [app.id for app in controller.applications if app.id.startswith(prefix)]
    if len(matches) != 1:
        raise KeyError(
            f"No application matches id {prefix!r}"
            if not matches
            else f"Id {prefix!r} is ambiguous"
        )
    return matches[0]


async def build_form(
    args: argparse.Namespace, base: Optional[JobApplicationFormData] = None
) -> JobApplicationFormData:
    """Merge command line options onto an existing form (or a blank one)."""
    values = base.form_fields() if base is not None else {}
    options = {
        "company": args.company,
        "role": args.role,
        "date_applied": args.date,
        "status": args.status,
        "job_link": args.link,
        "notes": args.notes,
    }
    values.update({key: value for key, value in options.items() if value is not None})
    form = JobApplicationFormData(**values)

    if getattr(args, "remove_cv", False):
        form = form.without_attachment()
    if args.cv:
        path = Path(args.cv).expanduser()
        try:
            selected = SelectedFile.from_path(path)
        except OSError as e:
            raise AttachmentReadError() from e
        attachment = await encode_attachment(selected)
        form = form.with_attachment(attachment)

    return form


async def run_command(args: argparse.Namespace, controller: ApplicationController) -> int:
    await controller.load()

    if args.command == "list":
        apps = controller.search(args.search) if args.search else controller.applications
        print_table(apps, len(controller))
        return 0

    if args.command == "show":
        print_detail(controller.open_detail(resolve_id(controller, args.id)))
        return 0

    if args.command == "download-cv":
        app = controller.get(resolve_id(controller, args.id))
        target = save_attachment(app, Path(args.output).expanduser())
        print(f"Saved {target}")
        return 0

    if args.command == "add":
        controller.begin_create()
        app = await controller.submit(await build_form(args))
        print(f"Added {app.company} - {app.role} ({app.id})")
        return 0

    if args.command == "edit":
        existing = controller.begin_edit(resolve_id(controller, args.id))
        app = await controller.submit(await build_form(args, existing))
        print(f"Updated {app.company} - {app.role}")
        return 0

    if args.command == "delete":
        app_id = resolve_id(controller, args.id)
        if not args.yes and input(DELETE_PROMPT).strip().lower() not in ("y", "yes"):
            print("Cancelled.")
            return 0
        await controller.delete(app_id)
        print(f"Deleted {app_id}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def add_form_options(parser: argparse.ArgumentParser, required: bool) -> None:
    """Add the application form fields to an add or edit subcommand."""
    parser.add_argument("--company", required=required, help="Company name")
    parser.add_argument("--role", required=required, help="Job role")
    parser.add_argument("--date", help="Date applied, DD/MM/YYYY (default: today)")
    parser.add_argument(
        "--status", choices=[status.value for status in JobStatus], help="Application status"
    )
    parser.add_argument("--link", help="Job posting URL")
    parser.add_argument("--cv", help="CV / resume file to attach (up to 800KB)")
    parser.add_argument("--notes", help="Free-text notes")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="jobtracker", description="Track your job applications"
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    commands = parser.add_subparsers(dest="command", required=True)

    login = commands.add_parser("login", help="Sign in with email and password")
    login.add_argument("--email", required=True)
    commands.add_parser("logout", help="Sign out")

    listing = commands.add_parser("list", help="List applications")
    listing.add_argument("--search", "-s", help="Filter by company or role")

    show = commands.add_parser("show", help="Show application details")
    show.add_argument("id")

    add = commands.add_parser("add", help="Add a new application")
    add_form_options(add, required=True)

    edit = commands.add_parser("edit", help="Edit an application")
    edit.add_argument("id")
    add_form_options(edit, required=False)
    edit.add_argument("--remove-cv", action="store_true", help="Remove the attached CV")

    delete = commands.add_parser("delete", help="Delete an application")
    delete.add_argument("id")
    delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    download = commands.add_parser("download-cv", help="Save an application's CV")
    download.add_argument("id")
    download.add_argument("--output", "-o", default=".", help="Target directory")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point with concurrency protection."""
    args = build_parser().parse_args(argv)

    try:
        load_config(args.config)
        setup_logging()
    except FileNotFoundError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "login":
            session = sign_in(args.email, getpass.getpass("Password: "))
            print(f"Signed in as {session.email}")
            return 0

        if args.command == "logout":
            sign_out()
            print("Signed out")
            return 0

        session = require_session()
        controller = ApplicationController(FirestoreStore.connect(session), session.user_id)

        with FileLock(LOCK_DIR / f"jobtracker-{session.user_id}.lock", timeout=LOCK_TIMEOUT):
            return asyncio.run(run_command(args, controller))

    except Timeout:
        logger.warning("Could not acquire lock - another command is running")
        print("Another jobtracker command is still running.", file=sys.stderr)
        return 1

    except (
        AuthError,
        ApplicationError,
        AttachmentTooLargeError,
        AttachmentReadError,
    ) as e:
        print(str(e), file=sys.stderr)
        return 1

    except ValidationError as e:
        print(f"Invalid application: {e}", file=sys.stderr)
        return 2

    except (KeyError, ValueError) as e:
        print(e.args[0], file=sys.stderr)
        return 1

    except Exception as e:
        logger.exception(f"Command failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
