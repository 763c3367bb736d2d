"""
EnSync CLI - Command-line interface.

This layer provides the user-facing commands, using the SDK layer for all
API operations. It handles:
- Argument parsing
- Reading JSON payloads inline, from a file or from stdin
- Pretty JSON output on stdout
- Single-line error messages on stderr
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from ensync_cli import version
from ensync_cli.config import load_settings
from ensync_cli.core.errors import CLIError, DecodeError, ValidationError
from ensync_cli.core.types import ORDER_BY_FIELDS, ORDER_CHOICES, Event, ListParams, Permissions
from ensync_cli.log import get_logger, setup_logging
from ensync_cli.sdk import EnSyncClient

# =============================================================================
# Output Helpers
# =============================================================================


def json_output(data: Any) -> None:
    """Print pretty JSON output."""
    print(json.dumps(data, indent=2, default=str))


def error_output(error: CLIError) -> None:
    """Print a one-line error to stderr and exit."""
    message = " ".join(str(error).split())
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def success_output(data: Any) -> None:
    """Print success output."""
    json_output(data)


# =============================================================================
# Input Helpers
# =============================================================================


def load_json_input(inline: str | None, file: str | None, flag: str) -> Any:
    """
    Parse a JSON argument given inline or as a file path ('-' for stdin).

    Returns None when neither was given.
    """
    try:
        if inline is not None:
            return json.loads(inline)
        if file is None:
            return None
        if file == "-":
            return json.load(sys.stdin)
        return json.loads(Path(file).read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ValidationError(f"File not found: {file}")
    except OSError as e:
        raise ValidationError(f"Failed to read {file}: {e}")
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in {flag}: {e}")


def parse_payload(data: Any) -> dict[str, str]:
    """Validate an event payload: a flat object of string values."""
    if data is None:
        return {}
    if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
        raise ValidationError("Payload must be a JSON object with string values")
    return data


def parse_permissions(data: Any) -> Permissions:
    """Accept either {send, receive} or {"permissions": {send, receive}}."""
    if data is None:
        return Permissions()
    if isinstance(data, dict) and isinstance(data.get("permissions"), dict):
        data = data["permissions"]
    try:
        return Permissions.from_dict(data)
    except DecodeError as e:
        raise ValidationError(f"Invalid permissions: {e.message}")


def list_params(args: argparse.Namespace, **filters: str | None) -> ListParams:
    return ListParams(
        page_index=args.page,
        limit=args.limit,
        order=args.order,
        order_by=args.order_by,
        filters={k: v for k, v in filters.items() if v},
    )


# =============================================================================
# Event Commands
# =============================================================================


def cmd_event_list(client: EnSyncClient, args: argparse.Namespace) -> None:
    """List events."""
    try:
        events = client.events.list(list_params(args))
        success_output(events.to_dict())
    except CLIError as e:
        error_output(e)


def cmd_event_get(client: EnSyncClient, args: argparse.Namespace) -> None:
    """Get an event by name."""
    try:
        event = client.events.get(args.name)
        success_output(event.to_dict())
    except CLIError as e:
        error_output(e)


def cmd_event_create(client: EnSyncClient, args: argparse.Namespace) -> None:
    """Create an event definition."""
    try:
        payload = parse_payload(load_json_input(args.payload, args.payload_file, "--payload"))
        client.events.create(Event(name=args.name, payload=payload))
        success_output({"success": True, "message": f"Event '{args.name}' created"})
    except CLIError as e:
        error_output(e)


def cmd_event_update(client: EnSyncClient, args: argparse.Namespace) -> None:
    """Update an event definition."""
    try:
        payload = parse_payload(load_json_input(args.payload, args.payload_file, "--payload"))
        client.events.update(Event(id=args.id, name=args.name, payload=payload))
        success_output({"success": True, "message": f"Event '{args.id}' updated"})
    except CLIError as e:
        error_output(e)


# =============================================================================
# Access Key Commands
# =============================================================================


def cmd_access_key_list(client: EnSyncClient, args: argparse.Namespace) -> None:
    """List access keys."""
    try:
        keys = client.access_keys.list(list_params(args, accessKey=args.key))
        success_output(keys.to_dict())
    except CLIError as e:
        error_output(e)


def cmd_access_key_create(client: EnSyncClient, args: argparse.Namespace) -> None:
    """Create an access key."""
    try:
        permissions = parse_permissions(load_json_input(args.permissions, args.file, "--permissions"))
        access_key = client.access_keys.create(permissions)
        success_output(access_key.to_dict())
    except CLIError as e:
        error_output(e)


def cmd_access_key_verify(client: EnSyncClient, args: argparse.Namespace) -> None:
    """Verify an access key."""
    try:
        valid = client.access_keys.verify(args.key)
        success_output({"valid": valid, "key": args.key})
    except CLIError as e:
        error_output(e)


def cmd_permissions_get(client: EnSyncClient, args: argparse.Namespace) -> None:
    """Get the permissions of an access key."""
    try:
        permissions = client.access_keys.get_permissions(args.key)
        success_output(permissions.to_dict())
    except CLIError as e:
        error_output(e)


def cmd_permissions_set(client: EnSyncClient, args: argparse.Namespace) -> None:
    """Replace the permissions of an access key."""
    try:
        data = load_json_input(args.permissions, args.file, "--permissions")
        if data is None:
            raise ValidationError("Permissions are required. Use --permissions or --file")
        client.access_keys.set_permissions(args.key, parse_permissions(data))
        success_output({"success": True, "message": f"Permissions updated for {args.key}"})
    except CLIError as e:
        error_output(e)


# =============================================================================
# Version
# =============================================================================


def cmd_version(_client: EnSyncClient | None, args: argparse.Namespace) -> None:
    """Print version information."""
    if args.json:
        json_output(version.get())
    else:
        print(version.as_text())


# =============================================================================
# Main CLI
# =============================================================================


def add_list_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--page", type=int, default=0, help="Page index")
    parser.add_argument("--limit", type=int, default=10, help="Number of items per page")
    parser.add_argument("--order", default="DESC", choices=ORDER_CHOICES, help="Sort order")
    parser.add_argument("--order-by", default="createdAt", choices=ORDER_BY_FIELDS, help="Field to order by")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ensync",
        description="EnSync CLI - Manage events and access keys",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ensync event list --limit 20 --order-by name
  ensync event create --name orders.created --payload '{"orderId": "string"}'
  ensync access-key create --permissions '{"send": ["orders.created"], "receive": []}'
  ensync access-key permissions set --key <key> --file permissions.json
""",
    )
    parser.add_argument("--config", help="Config file (default: $HOME/.ensync/config.yaml)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # ========== Events ==========
    event = subparsers.add_parser("event", help="Manage events")
    event.set_defaults(func=lambda _c, _a: event.print_help(), requires_client=False)
    event_sub = event.add_subparsers(dest="subcommand")

    e_list = event_sub.add_parser("list", help="List events")
    add_list_arguments(e_list)
    e_list.set_defaults(func=cmd_event_list, requires_client=True)

    e_create = event_sub.add_parser("create", help="Create a new event definition")
    e_create.add_argument("--name", required=True, help="Event name")
    e_create_payload = e_create.add_mutually_exclusive_group()
    e_create_payload.add_argument("--payload", help="Payload schema as inline JSON")
    e_create_payload.add_argument("--payload-file", help="JSON file containing the payload (or - for stdin)")
    e_create.set_defaults(func=cmd_event_create, requires_client=True)

    e_update = event_sub.add_parser("update", help="Update an existing event definition")
    e_update.add_argument("--id", required=True, help="Event ID")
    e_update.add_argument("--name", required=True, help="Event name")
    e_update_payload = e_update.add_mutually_exclusive_group()
    e_update_payload.add_argument("--payload", help="New payload schema as inline JSON")
    e_update_payload.add_argument("--payload-file", help="JSON file containing the new payload (or - for stdin)")
    e_update.set_defaults(func=cmd_event_update, requires_client=True)

    e_get = event_sub.add_parser("get", help="Get an event by name")
    e_get.add_argument("name", help="Event name")
    e_get.set_defaults(func=cmd_event_get, requires_client=True)

    # ========== Access Keys ==========
    access_key = subparsers.add_parser("access-key", help="Manage access keys")
    access_key.set_defaults(func=lambda _c, _a: access_key.print_help(), requires_client=False)
    access_key_sub = access_key.add_subparsers(dest="subcommand")

    k_list = access_key_sub.add_parser("list", help="List access keys")
    add_list_arguments(k_list)
    k_list.add_argument("--key", help="Filter by access key")
    k_list.set_defaults(func=cmd_access_key_list, requires_client=True)

    k_create = access_key_sub.add_parser("create", help="Create a new access key")
    k_create_source = k_create.add_mutually_exclusive_group()
    k_create_source.add_argument("--permissions", help="Permissions as inline JSON")
    k_create_source.add_argument("--file", help="JSON file containing permissions (or - for stdin)")
    k_create.set_defaults(func=cmd_access_key_create, requires_client=True)

    k_verify = access_key_sub.add_parser("verify", help="Verify an access key")
    k_verify.add_argument("--key", required=True, help="Access key to verify")
    k_verify.set_defaults(func=cmd_access_key_verify, requires_client=True)

    permissions = access_key_sub.add_parser("permissions", help="Manage access key permissions")
    permissions.set_defaults(func=lambda _c, _a: permissions.print_help(), requires_client=False)
    permissions_sub = permissions.add_subparsers(dest="permissions_command")

    kp_get = permissions_sub.add_parser("get", help="Get access key permissions")
    kp_get.add_argument("--key", required=True, help="Access key")
    kp_get.set_defaults(func=cmd_permissions_get, requires_client=True)

    kp_set = permissions_sub.add_parser("set", help="Set access key permissions")
    kp_set.add_argument("--key", required=True, help="Access key")
    kp_set_source = kp_set.add_mutually_exclusive_group()
    kp_set_source.add_argument("--permissions", help="Permissions as inline JSON")
    kp_set_source.add_argument("--file", help="JSON file containing permissions (or - for stdin)")
    kp_set.set_defaults(func=cmd_permissions_set, requires_client=True)

    # ========== Version ==========
    version_parser = subparsers.add_parser("version", help="Print version information")
    version_parser.add_argument("--json", action="store_true", help="Output version information as JSON")
    version_parser.set_defaults(func=cmd_version, requires_client=False)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    if not args.requires_client:
        args.func(None, args)
        return

    # Configuration problems are reported before any request is made
    try:
        settings = load_settings(args.config)
        setup_logging(level="DEBUG" if args.debug or settings.debug else "WARNING")
        client = EnSyncClient(settings.client_config(logger=get_logger("ensync_cli.client")))
    except CLIError as e:
        error_output(e)

    args.func(client, args)


if __name__ == "__main__":
    main()
