#!/usr/bin/env python3
"""
vidcat CLI - Command line interface for the video catalog admin API.
"""

import argparse
import os
import sys

import httpx

from api.errors import truncate_error
from config import ADMIN_PORT, ERROR_DETAIL_MAX_LENGTH, ERROR_SUMMARY_MAX_LENGTH, SKILL_LEVELS


def positive_int(value: str) -> int:
    """Argparse type converter that validates positive integers."""
    i = int(value)
    if i <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {i}")
    return i


# Default timeout for API requests (30 seconds)
DEFAULT_API_TIMEOUT = int(os.getenv("VIDCAT_API_TIMEOUT", "30"))

# Admin API URL - can override host and port, or use the port from config
_default_api_url = f"http://localhost:{ADMIN_PORT}"
API_BASE = os.getenv("VIDCAT_ADMIN_API_URL", _default_api_url).rstrip("/") + "/api"

# Video fields settable from the command line, keyed by argparse dest
VIDEO_FIELD_ARGS = (
    "title",
    "description",
    "video_ref",
    "section_title",
    "duration",
    "skill",
    "watched_fully",
    "ott",
    "app",
    "arg",
    "putt",
)


class CLIError(Exception):
    """Custom exception for CLI errors."""

    pass


def safe_json_response(response, default_error="Request failed"):
    """
    Safely parse JSON response with proper error handling.

    Args:
        response: httpx.Response object
        default_error: Default error message if response has no detail

    Returns:
        Parsed JSON data if successful

    Raises:
        CLIError: If response status is not successful or JSON parsing fails
    """
    if not response.is_success:
        try:
            detail = response.json().get("detail", response.text)
        except (ValueError, httpx.ResponseNotRead):
            detail = truncate_error(response.text, ERROR_DETAIL_MAX_LENGTH) if response.text else default_error
        raise CLIError(f"API error ({response.status_code}): {detail}")

    try:
        return response.json()
    except (ValueError, httpx.ResponseNotRead):
        raise CLIError(f"Invalid JSON response: {truncate_error(response.text, ERROR_SUMMARY_MAX_LENGTH)}")


def _fail(message: str):
    print(message)
    sys.exit(1)


def _run(action):
    """Run one API interaction, mapping transport and API errors to exit code 1."""
    try:
        action()
    except httpx.ConnectError:
        _fail(f"Error: Could not connect to admin API at {API_BASE}")
    except httpx.TimeoutException:
        _fail(f"Error: Request timed out while connecting to {API_BASE}")
    except CLIError as e:
        _fail(f"Error: {e}")


def _shorten(text, width):
    text = text or "-"
    return text[: width - 2] + ".." if len(text) > width else text


def _print_write_result(result: dict):
    print(f"{result.get('message') or 'Saved'} (id: {result['video_id']})")
    for warning in result.get("warnings", []):
        print(f"Warning: {warning}")


def _video_payload(args, base: dict = None) -> dict:
    """Merge the field flags that were given over an existing video (or defaults)."""
    payload = dict(base or {})
    for name in VIDEO_FIELD_ARGS:
        value = getattr(args, name, None)
        if value is not None:
            payload[name] = value
    return payload


def cmd_list(args):
    """List videos with their tags."""

    def action():
        response = httpx.get(
            f"{API_BASE}/videos", params={"include_tags": "true"}, timeout=DEFAULT_API_TIMEOUT
        )
        videos_list = safe_json_response(response)

        if not videos_list:
            print("No videos found.")
            return

        print(f"{'ID':<5} {'Skill':<6} {'Title':<40} {'Section':<20} {'Tags':<30}")
        print("-" * 105)
        for v in videos_list:
            tags = ", ".join(v.get("tags") or [])
            print(
                f"{v['id']:<5} {v['skill'] or '-':<6} {_shorten(v['title'], 40):<40} "
                f"{_shorten(v['section_title'], 20):<20} {_shorten(tags, 30):<30}"
            )

    _run(action)


def cmd_sections(args):
    """List or create sections."""

    def action():
        if args.create:
            response = httpx.post(
                f"{API_BASE}/sections",
                json={"name": args.create, "description": args.description or "", "skill": args.skill or ""},
                timeout=DEFAULT_API_TIMEOUT,
            )
            section = safe_json_response(response)
            print(f"Created section: {section['name']} (id: {section['id']})")
            return

        response = httpx.get(f"{API_BASE}/sections", timeout=DEFAULT_API_TIMEOUT)
        sections = safe_json_response(response)

        if not sections:
            print("No sections found.")
            return

        print(f"{'ID':<5} {'Name':<30} {'Skill':<10}")
        print("-" * 47)
        for s in sections:
            print(f"{s['id']:<5} {_shorten(s['name'], 30):<30} {s['skill'] or '-':<10}")

    _run(action)


def cmd_create_video(args):
    """Add a video with tags and section links."""

    def action():
        payload = _video_payload(args)
        payload["tags"] = args.tag or []
        payload["section_ids"] = args.section or []
        response = httpx.post(f"{API_BASE}/videos", json=payload, timeout=DEFAULT_API_TIMEOUT)
        _print_write_result(safe_json_response(response))

    _run(action)


def cmd_edit_video(args):
    """Edit an existing video. Only the given fields change."""

    def action():
        response = httpx.get(f"{API_BASE}/videos/{args.video_id}", timeout=DEFAULT_API_TIMEOUT)
        current = safe_json_response(response)

        payload = _video_payload(args, {name: current.get(name) for name in VIDEO_FIELD_ARGS})
        # Nulls from the stored row are sent as the form defaults
        for name, default in (("description", ""), ("section_title", ""), ("duration", ""), ("skill", 1)):
            if payload.get(name) is None:
                payload[name] = default

        if args.clear_tags:
            payload["tags"] = []
        else:
            payload["tags"] = args.tag if args.tag is not None else current.get("tags", [])
        if args.clear_sections:
            payload["section_ids"] = []
        else:
            payload["section_ids"] = args.section if args.section is not None else current.get("section_ids", [])

        response = httpx.put(f"{API_BASE}/videos/{args.video_id}", json=payload, timeout=DEFAULT_API_TIMEOUT)
        _print_write_result(safe_json_response(response))

    _run(action)


def cmd_tags(args):
    """Show the tags of one video."""

    def action():
        response = httpx.get(f"{API_BASE}/videos/{args.video_id}/tags", timeout=DEFAULT_API_TIMEOUT)
        tags = safe_json_response(response)
        if not tags:
            print(f"Video {args.video_id} has no tags.")
            return
        for tag in tags:
            print(tag)

    _run(action)


def cmd_delete(args):
    """Delete one or more videos."""

    def action():
        response = httpx.post(
            f"{API_BASE}/videos/bulk/delete", json={"video_ids": args.video_ids}, timeout=DEFAULT_API_TIMEOUT
        )
        result = safe_json_response(response)
        for item in result["results"]:
            if item["success"]:
                print(f"Video {item['video_id']} deleted.")
            else:
                print(f"Video {item['video_id']}: {item['error']}")
        if result["failed"]:
            sys.exit(1)

    _run(action)


def _add_video_field_args(parser, required: bool):
    parser.add_argument("-t", "--title", required=required, help="Video title")
    parser.add_argument("-r", "--ref", dest="video_ref", required=required, help="YouTube video id or link")
    parser.add_argument("-d", "--description", help="Video description")
    parser.add_argument("--section-title", help="Free-text section label")
    parser.add_argument("--duration", help="Duration text, e.g. 00:05:00")
    parser.add_argument("-s", "--skill", type=int, choices=SKILL_LEVELS, help="Skill level")
    parser.add_argument("--watched-fully", action=argparse.BooleanOptionalAction, default=None)
    for flag in ("ott", "app", "arg", "putt"):
        parser.add_argument(f"--{flag}", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--tag", action="append", help="Tag (repeatable)")
    parser.add_argument("--section", action="append", type=positive_int, help="Section ID (repeatable)")


def main():
    parser = argparse.ArgumentParser(prog="vidcat", description="vidcat CLI - Manage the video catalog")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # List command
    list_parser = subparsers.add_parser("list", help="List videos")
    list_parser.set_defaults(func=cmd_list)

    # Sections command
    sec_parser = subparsers.add_parser("sections", help="List or create sections")
    sec_parser.add_argument("--create", metavar="NAME", help="Create a new section")
    sec_parser.add_argument("-d", "--description", help="Section description (with --create)")
    sec_parser.add_argument("-s", "--skill", help="Section skill label (with --create)")
    sec_parser.set_defaults(func=cmd_sections)

    # Create video command
    create_parser = subparsers.add_parser("create-video", help="Add a video")
    _add_video_field_args(create_parser, required=True)
    create_parser.set_defaults(func=cmd_create_video)

    # Edit video command
    edit_parser = subparsers.add_parser("edit-video", help="Edit a video")
    edit_parser.add_argument("video_id", type=positive_int, help="Video ID to edit")
    _add_video_field_args(edit_parser, required=False)
    edit_parser.add_argument("--clear-tags", action="store_true", help="Remove all tags")
    edit_parser.add_argument("--clear-sections", action="store_true", help="Unlink all sections")
    edit_parser.set_defaults(func=cmd_edit_video)

    # Tags command
    tags_parser = subparsers.add_parser("tags", help="Show a video's tags")
    tags_parser.add_argument("video_id", type=positive_int, help="Video ID")
    tags_parser.set_defaults(func=cmd_tags)

    # Delete command
    del_parser = subparsers.add_parser("delete", help="Delete videos")
    del_parser.add_argument("video_ids", type=positive_int, nargs="+", help="Video IDs to delete")
    del_parser.set_defaults(func=cmd_delete)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
