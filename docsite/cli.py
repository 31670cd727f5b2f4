"""CLI entrypoints for docsite commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from . import __version__
from .errors import DocsiteError
from .logging import configure_logging
from .pipeline import Pipeline


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project root holding .docsite.yml (defaults to current directory).",
    )


def _add_dry_run_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Prepare the publish but do not replace the published site.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsite",
        description="Build Markdown documents into a static site and publish it.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write detailed logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Render the Markdown sources into HTML.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    _add_path_argument(build_parser)
    build_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output directory (defaults to build.output_dir).",
    )

    publish_parser = subparsers.add_parser(
        "publish",
        help="Publish an existing build to the configured target.",
    )
    _add_verbose_option(publish_parser, suppress_default=True)
    _add_path_argument(publish_parser)
    _add_dry_run_option(publish_parser)
    publish_parser.add_argument(
        "--site",
        type=Path,
        default=None,
        help="Directory to publish (defaults to build.output_dir).",
    )

    deploy_parser = subparsers.add_parser(
        "deploy",
        help="Install dependencies, build, and publish in one run.",
    )
    _add_verbose_option(deploy_parser, suppress_default=True)
    _add_path_argument(deploy_parser)
    _add_dry_run_option(deploy_parser)
    deploy_parser.add_argument(
        "--skip-install",
        action="store_true",
        help="Do not install the dependency manifest first.",
    )
    deploy_parser.add_argument(
        "--keep-output",
        type=Path,
        default=None,
        metavar="DIR",
        help="Build into DIR and keep it instead of a discarded temporary directory.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the push-webhook service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")
    serve_parser.add_argument(
        "--project",
        default=".",
        help="Project root the webhook builds and publishes.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docsite commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    pipeline = Pipeline()

    try:
        if args.command == "build":
            config = pipeline.load(args.path)
            site = pipeline.build(config, args.output)
            print(f"Built {len(site.pages)} pages into {_relativize(site.root)}")
        elif args.command == "publish":
            config = pipeline.load(args.path)
            site_dir = args.site if args.site is not None else config.output_root
            result = pipeline.publish(config, site_dir, dry_run=bool(args.dry_run))
            print(_describe_publish(result.target, result.files, result.dry_run))
        elif args.command == "deploy":
            outcome = pipeline.run(
                args.path,
                skip_install=bool(args.skip_install),
                dry_run=bool(args.dry_run),
                output_dir=args.keep_output,
            )
            print(f"Built {len(outcome.site.pages)} pages")
            published = outcome.publish
            if published is not None:
                print(_describe_publish(published.target, published.files, published.dry_run))
        elif args.command == "serve":
            from .service import run_service

            run_service(host=args.host, port=args.port, project=args.project)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except DocsiteError as exc:
        parser.exit(1, f"docsite {args.command} failed during {exc.step}: {exc}\n")
    except Exception as exc:  # pragma: no cover
        parser.exit(1, f"docsite {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _describe_publish(target: str, files: int, dry_run: bool) -> str:
    if dry_run:
        return f"Would publish {files} files to {target} (dry-run)"
    return f"Published {files} files to {target}"


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
