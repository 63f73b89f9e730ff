"""CLI for submitting a single image and printing the outcome."""

import argparse
import json
import mimetypes
import sys
from pathlib import Path

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from core.analysis.coordinator import SubmissionCoordinator, submit_image_for_analysis
from core.analysis.models import CustomScope, DefaultScope
from core.logging_config import setup_logging
from core.settings import PollingSettings, Settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload an image and wait for its analysis result")
    parser.add_argument("image", type=Path, help="JPEG or PNG image to analyse")
    parser.add_argument("--mime-type", help="Override the detected content type")
    parser.add_argument("--config", type=Path, help="Configuration YAML (default: FACESIGHT_CONFIG or config/default.yaml)")
    parser.add_argument("--access-key-id", help="Custom identity access key id")
    parser.add_argument("--secret-access-key", help="Custom identity secret key")
    parser.add_argument("--region", help="Custom identity region")
    parser.add_argument("--bucket", help="Custom bucket name")
    parser.add_argument("--max-attempts", type=int, help="Override polling.max_attempts")
    parser.add_argument("--interval-ms", type=int, help="Override polling.interval_ms")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level="DEBUG" if args.verbose else "WARNING")

    settings = Settings.load(args.config)
    overrides = {
        name: value
        for name, value in (("max_attempts", args.max_attempts), ("interval_ms", args.interval_ms))
        if value is not None
    }
    if overrides:
        try:
            settings.polling = PollingSettings(**{**settings.polling.model_dump(), **overrides})
        except PydanticValidationError as exc:
            problems = [f"--{str(err['loc'][0]).replace('_', '-')} {err['msg'].lower()}" for err in exc.errors()]
            parser.error("; ".join(problems))

    if not args.image.is_file():
        logger.error(f"Image not found: {args.image}")
        return 2

    mime_type = args.mime_type or mimetypes.guess_type(args.image.name)[0] or "application/octet-stream"
    custom_fields = (args.access_key_id, args.secret_access_key, args.region, args.bucket)
    scope = (
        CustomScope.from_form(
            access_key_id=args.access_key_id,
            secret_access_key=args.secret_access_key,
            region=args.region,
            bucket_name=args.bucket,
        )
        if any(custom_fields)
        else DefaultScope()
    )

    outcome = submit_image_for_analysis(
        args.image.read_bytes(),
        args.image.name,
        mime_type,
        scope,
        coordinator=SubmissionCoordinator.from_settings(settings),
    )
    json.dump(outcome.to_dict(), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0 if outcome.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
