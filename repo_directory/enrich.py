"""
Enrichment pipeline
Fetches live GitHub metadata for every curated entry, classifies its
activity, and writes the generated/repos.json snapshot.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

import jsonschema

from .activity import classify_activity, compute_commit_pace, parse_timestamp
from .config import (
    DATASET_PATH,
    DEFAULT_CONCURRENCY,
    GITHUB_API_BASE,
    PUBLIC_SNAPSHOT_PATH,
    SNAPSHOT_PATH,
    github_token,
)
from .dataset import CuratedEntry, load_entries
from .errors import DirectoryError, SnapshotError
from .github_client import GitHubClient, PendingRetryPolicy

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema" / "enriched_entry.schema.json"

_schema_cache = {}


def load_snapshot_schema(schema_path: Union[str, Path] = SCHEMA_PATH) -> dict:
    """Load (and cache) the JSON Schema for enriched entries"""
    key = str(schema_path)
    if key not in _schema_cache:
        with open(schema_path, 'r', encoding='utf-8') as f:
            _schema_cache[key] = json.load(f)
    return _schema_cache[key]


def license_name(license_info: Optional[dict]) -> str:
    if not license_info:
        return 'None'
    return license_info.get('spdx_id') or license_info.get('name') or 'None'


def build_entry(
    repo: dict,
    commit_stats: Optional[list],
    entry: CuratedEntry,
    now: Optional[datetime] = None,
) -> dict:
    """Merge GitHub metadata, commit stats and the curated fields into one record"""
    commit_pace = compute_commit_pace(commit_stats)
    activity_status = classify_activity(
        parse_timestamp(repo.get('created_at')),
        parse_timestamp(repo.get('pushed_at')),
        bool(repo.get('archived')),
        commit_pace,
        now=now,
    )

    return {
        'slug': repo.get('full_name') or entry.slug,
        'name': repo.get('name') or entry.name,
        'url': repo.get('html_url') or f"https://github.com/{entry.slug}",
        'description': repo.get('description') or '',
        'stars': repo.get('stargazers_count') or 0,
        'forks': repo.get('forks_count') or 0,
        'open_issues': repo.get('open_issues_count') or 0,
        'created_at': repo['created_at'],
        'last_commit': repo['pushed_at'],
        'activity_status': activity_status.value,
        'commit_pace': commit_pace,
        'license': license_name(repo.get('license')),
        'language': repo.get('language') or 'Unknown',
        'topics': list(repo.get('topics') or []),
        'category': entry.category,
        'notes': entry.notes.strip(),
    }


def check_records(records: Sequence[dict], schema: Optional[dict] = None) -> None:
    """Raise SnapshotError if any record does not match the snapshot schema"""
    validator = jsonschema.Draft7Validator(schema or load_snapshot_schema())
    for index, record in enumerate(records):
        error = jsonschema.exceptions.best_match(validator.iter_errors(record))
        if error is not None:
            location = '.'.join(str(p) for p in error.path) or '<record>'
            raise SnapshotError(
                f"Record {index} ({record.get('slug', '?')}) invalid at {location}: {error.message}"
            )


class EnrichmentPipeline:
    """Turn curated entries into enriched snapshot records"""

    def __init__(self, client, concurrency: int = DEFAULT_CONCURRENCY, now: Optional[datetime] = None):
        self.client = client
        self.concurrency = max(1, concurrency)
        self.now = now

    async def enrich_entry(self, entry: CuratedEntry) -> dict:
        """Fetch metadata and commit stats together, then merge"""
        logger.info(f"  Fetching {entry.slug}...")
        repo, commit_stats = await asyncio.gather(
            self.client.fetch_repo(entry.slug),
            self.client.fetch_commit_activity(entry.slug),
            return_exceptions=True,
        )
        if isinstance(repo, BaseException):
            raise repo
        if isinstance(commit_stats, BaseException):
            raise commit_stats
        try:
            return build_entry(repo, commit_stats, entry, now=self.now)
        except (KeyError, ValueError) as e:
            raise SnapshotError(f"Unexpected metadata for {entry.slug}: {e}") from e

    async def enrich(self, entries: Sequence[CuratedEntry]) -> List[dict]:
        """
        Enrich all entries, keeping the curated order.

        The first failing metadata fetch cancels the remaining work and is
        re-raised; no partial result is returned.
        """
        logger.info(f"Processing {len(entries)} repositories...")
        results: List[Optional[dict]] = [None] * len(entries)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run_one(index: int, entry: CuratedEntry):
            async with semaphore:
                results[index] = await self.enrich_entry(entry)

        tasks = [asyncio.ensure_future(run_one(i, entry)) for i, entry in enumerate(entries)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        return results


async def enrich_async(
    entries: Sequence[CuratedEntry],
    token: Optional[str] = None,
    api_base: str = GITHUB_API_BASE,
    concurrency: int = DEFAULT_CONCURRENCY,
    retry_policy: Optional[PendingRetryPolicy] = None,
) -> List[dict]:
    async with GitHubClient(token=token, api_base=api_base, retry_policy=retry_policy) as client:
        return await EnrichmentPipeline(client, concurrency=concurrency).enrich(entries)


def enrich(entries: Sequence[CuratedEntry], token: Optional[str] = None, **kwargs) -> List[dict]:
    """Synchronous wrapper around enrich_async"""
    return asyncio.run(enrich_async(entries, token=token, **kwargs))


def _stage(path: Path, data: bytes) -> str:
    """Write data to a temp file beside path and return its name"""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
    except BaseException:
        os.unlink(tmp_name)
        raise
    return tmp_name


def write_snapshot(
    records: Sequence[dict],
    output_path: Union[str, Path] = SNAPSHOT_PATH,
    public_path: Optional[Union[str, Path]] = PUBLIC_SNAPSHOT_PATH,
) -> bytes:
    """
    Write the snapshot to its canonical location and the public copy.

    Both copies are staged before either is renamed into place, so a failed
    write leaves both previous files untouched.
    """
    data = json.dumps(list(records), indent=2, ensure_ascii=False).encode('utf-8')

    targets = [Path(output_path)]
    if public_path:
        targets.append(Path(public_path))

    staged = []
    try:
        for target in targets:
            staged.append((_stage(target, data), target))
    except BaseException:
        for tmp_name, _ in staged:
            os.unlink(tmp_name)
        raise

    for tmp_name, target in staged:
        os.replace(tmp_name, target)

    logger.info(f"Wrote {len(records)} entries to {targets[0]}")
    for target in targets[1:]:
        logger.info(f"Copied to {target}")
    return data


def run(
    dataset_path: Union[str, Path] = DATASET_PATH,
    output_path: Union[str, Path] = SNAPSHOT_PATH,
    public_path: Optional[Union[str, Path]] = PUBLIC_SNAPSHOT_PATH,
    token: Optional[str] = None,
    concurrency: int = DEFAULT_CONCURRENCY,
    api_base: str = GITHUB_API_BASE,
) -> List[dict]:
    """Load the dataset, enrich it, and write the snapshot"""
    entries = load_entries(dataset_path)
    records = enrich(entries, token=token, api_base=api_base, concurrency=concurrency)
    check_records(records)
    write_snapshot(records, output_path, public_path)
    return records


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Fetch GitHub metadata for the curated directory')
    parser.add_argument('--dataset', default=DATASET_PATH, help='Curated dataset YAML')
    parser.add_argument('--output', default=SNAPSHOT_PATH, help='Snapshot output path')
    parser.add_argument('--public', default=PUBLIC_SNAPSHOT_PATH, help='Public copy of the snapshot')
    parser.add_argument('--token', help='GitHub API token (or set GITHUB_TOKEN env var)')
    parser.add_argument('--concurrency', type=int, default=DEFAULT_CONCURRENCY, help='Repositories fetched at once')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format='%(message)s')

    try:
        run(
            dataset_path=args.dataset,
            output_path=args.output,
            public_path=args.public,
            token=args.token or github_token(),
            concurrency=args.concurrency,
        )
    except DirectoryError as e:
        logger.error(f"ERROR: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
