"""
Run the extraction pipeline over a folder of policy documents and write the
CSV export next to them.

Usage:
    python scripts/extract_folder.py <folder> --company "ACME General" --policy-type "Motor"
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.exceptions import DocumentRejectedError
from app.services.accuracy_aggregator import summarize
from app.services.document_inspector import document_inspector
from app.services.document_queue import DocumentQueue
from app.services.exporter import export_csv

SUPPORTED_SUFFIXES = {".pdf", ".png", ".jpg", ".jpeg", ".webp"}


async def run(folder: Path, company: str, policy_type: str) -> int:
    queue = DocumentQueue()
    queue.select(company, policy_type)

    sources = []
    for path in sorted(folder.iterdir()):
        if path.suffix.lower() not in SUPPORTED_SUFFIXES:
            continue
        try:
            sources.append(document_inspector.inspect(path.read_bytes(), path.name))
        except DocumentRejectedError as e:
            print(f"⏭️  Skipped {e.filename}: {e.reason}")

    if not sources:
        print("No supported documents found")
        return 1

    queue.intake(sources)

    print("=" * 70)
    print(f"EXTRACTING {len(sources)} DOCUMENT(S) - {policy_type} / {company}")
    print("=" * 70)

    for task in await queue.process():
        if task.error_detail:
            print(f"❌ {task.filename}: {task.error_detail}")
            continue
        print(f"✅ {task.filename}: {len(task.findings)} finding(s)")
        for finding in task.findings:
            print(f"   [{finding.severity.value}] {finding.message}")

    summary = summarize(queue.tasks())
    if summary:
        print()
        print(f"Average confidence: {summary.average_confidence}%  -  {summary.label}")

    artifact = export_csv(queue.tasks(), company, policy_type)
    queue.clear()
    if artifact is None:
        print("Nothing to export")
        return 1

    output_path = folder / artifact.filename
    output_path.write_bytes(artifact.content)
    print(f"📤 Wrote {artifact.row_count} row(s) to {output_path}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Extract policy fields from a folder of documents")
    parser.add_argument("folder", type=Path)
    parser.add_argument("--company", required=True, help="Insurance company name")
    parser.add_argument("--policy-type", required=True, help="Policy category name")
    args = parser.parse_args()

    if not args.folder.is_dir():
        parser.error(f"{args.folder} is not a directory")

    return asyncio.run(run(args.folder, args.company, args.policy_type))


if __name__ == "__main__":
    sys.exit(main())
