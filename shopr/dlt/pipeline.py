#!/usr/bin/env python3
"""dlt pipeline runner for the Shopify streams.

Usage:
    python -m shopr.dlt.pipeline shopify orders                # Run single stream
    python -m shopr.dlt.pipeline shopify orders products       # Run multiple streams
    python -m shopr.dlt.pipeline shopify --all --max-pages 5   # Run all streams, capped
    python -m shopr.dlt.pipeline shopify orders --dry-run
"""
import argparse
import importlib
import os
import sys
from pathlib import Path
from typing import Any

env_file = Path(__file__).parent.parent.parent / ".env"
if env_file.exists():
    from dotenv import load_dotenv
    load_dotenv(env_file)

import dlt


def get_source_module(source_name: str):
    try:
        return importlib.import_module(f"shopr.dlt.sources.{source_name}")
    except ImportError as e:
        raise ImportError(f"Could not import source 'shopr.dlt.sources.{source_name}': {e}")


def get_streams(source_name: str) -> list[str]:
    """All streams a source exports."""
    return list(getattr(get_source_module(source_name), "__all__", []))


def get_resource(source_name: str, stream_name: str) -> Any:
    """Dynamically import and get a resource function from a source module."""
    source_module = get_source_module(source_name)

    if stream_name not in get_streams(source_name):
        raise ValueError(
            f"Stream '{stream_name}' not found in source '{source_name}'. "
            f"Available: {', '.join(get_streams(source_name))}"
        )

    return getattr(source_module, stream_name)


def stream_kwargs(source_name: str, stream_name: str, options: dict) -> dict:
    """Options the stream accepts (per STREAM_OPTIONS), skipping unset ones."""
    accepted = getattr(get_source_module(source_name), "STREAM_OPTIONS", {}).get(stream_name, ())
    return {k: v for k, v in options.items() if v is not None and k in accepted}


def create_pipeline(source_name: str) -> dlt.Pipeline:
    """Create a dlt pipeline with a filesystem destination.

    Environment variables:
        DLT_BUCKET_URL: Bucket or local directory (default: ./raw)
        S3_ENDPOINT: S3 endpoint for non-AWS (SeaweedFS, MinIO)
        S3_ACCESS_KEY_ID: S3 access key
        S3_SECRET_ACCESS_KEY: S3 secret key
    """
    bucket_url = os.environ.get("DLT_BUCKET_URL", str(Path.cwd() / "raw"))

    credentials = None
    endpoint_url = os.environ.get("S3_ENDPOINT")
    if endpoint_url:
        if not endpoint_url.startswith(("http://", "https://")):
            endpoint_url = f"http://{endpoint_url}"
        credentials = {
            "aws_access_key_id": os.environ.get("S3_ACCESS_KEY_ID"),
            "aws_secret_access_key": os.environ.get("S3_SECRET_ACCESS_KEY"),
            "endpoint_url": endpoint_url,
        }

    # e.g., orders__line_items/year=2026/month=01/day=09/{load_id}.{file_id}.parquet
    layout = "{table_name}/year={YYYY}/month={MM}/day={DD}/{load_id}.{file_id}.{ext}"

    return dlt.pipeline(
        pipeline_name=source_name,
        destination=dlt.destinations.filesystem(
            bucket_url=bucket_url,
            layout=layout,
            credentials=credentials,
        ),
        dataset_name=source_name,
    )


def run_stream(source_name: str, stream_name: str, options: dict, dry_run: bool = False) -> dict:
    """Run a single stream into the destination."""
    print(f"\n{'[DRY RUN] ' if dry_run else ''}Running {source_name}/{stream_name}")

    resource_func = get_resource(source_name, stream_name)
    kwargs = stream_kwargs(source_name, stream_name, options)

    if dry_run:
        print(f"  Would run with: {kwargs or 'defaults'}")
        return {"status": "dry_run", "kwargs": kwargs}

    resource = resource_func(**kwargs)

    # Child tables are already split out; remaining nested values stay inline
    resource.max_table_nesting = 0

    pipeline = create_pipeline(source_name)
    load_info = pipeline.run(resource, loader_file_format="parquet")

    print(f"  {load_info}")
    return {"status": "success", "load_info": str(load_info)}


def run_streams(
    source_name: str, stream_names: list[str], options: dict, dry_run: bool = False
) -> dict[str, dict]:
    """Run multiple streams for a source."""
    results = {}
    for stream_name in stream_names:
        try:
            results[stream_name] = run_stream(source_name, stream_name, options, dry_run)
        except Exception as e:
            print(f"  Error: {e}")
            results[stream_name] = {"status": "error", "error": str(e)}
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run Shopify streams into a dlt destination")
    parser.add_argument("source", help="Source name (e.g., 'shopify')")
    parser.add_argument("streams", nargs="*", help="Stream names to run")
    parser.add_argument(
        "--all",
        action="store_true",
        dest="run_all",
        help="Run every stream the source exports",
    )
    parser.add_argument("--max-pages", type=int, default=None, help="Page cap per stream")
    parser.add_argument("--limit", type=int, default=None, help="Records per page (1-250)")
    parser.add_argument(
        "--updated-at-min",
        default=None,
        help="Only records updated at or after this time (e.g. 2024-01-01T00:00:00-00:00)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be run without executing",
    )
    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.run_all:
        streams = get_streams(args.source)
        if not streams:
            print(f"No streams found in source '{args.source}'")
            sys.exit(1)
        print(f"Running all {len(streams)} streams: {', '.join(streams)}")
    elif args.streams:
        streams = args.streams
    else:
        parser.error("Specify stream names or use --all")

    options = {
        "max_pages": args.max_pages,
        "limit": args.limit,
        "updated_at_min": args.updated_at_min,
    }
    results = run_streams(args.source, streams, options, args.dry_run)

    # Summary
    print("\n" + "=" * 50)
    print("Summary:")
    for stream, result in results.items():
        status = result.get("status", "unknown")
        print(f"  {stream}: {status}")

    # Exit with error if any failed
    if any(r.get("status") == "error" for r in results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
