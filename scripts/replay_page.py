"""
Replay a saved chat page through the trust pipeline
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from hallucination_lens.config import get_settings  # noqa: E402
from hallucination_lens.dom import SoupPage  # noqa: E402
from hallucination_lens.evidence import HeuristicEvidenceSource, LiveEvidenceSource  # noqa: E402
from hallucination_lens.platforms import identify_platform  # noqa: E402
from hallucination_lens.presenter import SoupOverlayPresenter  # noqa: E402
from hallucination_lens.storage import MemorySettingsStore  # noqa: E402
from hallucination_lens.watcher import ResponseWatcher  # noqa: E402


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Score the assistant responses in a saved chat page")
    parser.add_argument("html_file", type=Path, help="Saved page HTML")
    parser.add_argument("--url", required=True, help="Original page URL (selects the platform)")
    parser.add_argument("--live", action="store_true", help="Query DuckDuckGo/Wikipedia instead of the offline heuristic")
    parser.add_argument("--output", type=Path, help="Write the annotated HTML here")
    parser.add_argument("--json", action="store_true", help="Print verdicts as JSON")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def print_report(platform, payloads, as_json=False):
    if as_json:
        print(json.dumps([
            {
                "verdict": payload.verdict.model_dump(mode="json"),
                "keywords": payload.keywords,
                "evidence": [item.model_dump() for item in payload.evidence],
            }
            for payload in payloads
        ], ensure_ascii=False, indent=2))
        return

    print(f"Platform: {platform}")
    print("=" * 50)
    for index, payload in enumerate(payloads, 1):
        verdict = payload.verdict
        print(f"\n{index}. {verdict.label} - {verdict.reason}")
        print(f"   Keywords: {', '.join(payload.keywords)}")
        for item in payload.evidence:
            if item.is_actionable:
                print(f"   - {item.title}: {item.url}")
    print(f"\n{len(payloads)} response(s) scored")


async def replay(args) -> int:
    settings = get_settings().model_copy(update={"initial_scan_delay_seconds": 0.0})
    page = SoupPage(args.html_file.read_text(encoding="utf-8"), args.url)
    platform = identify_platform(page.hostname, page.url)
    if not platform.supported:
        print(f"Unsupported platform for {args.url}")
        return 1

    presenter = SoupOverlayPresenter(page, platform=platform.value)
    source = LiveEvidenceSource(settings) if args.live else HeuristicEvidenceSource(settings)
    watcher = ResponseWatcher(
        page,
        evidence_source=source,
        presenter=presenter,
        settings_store=MemorySettingsStore(),
        settings=settings,
        platform=platform,
    )
    await watcher.start()
    try:
        await watcher.process_new_content()
        print_report(platform.value, presenter.payloads, as_json=args.json)
        if args.output:
            args.output.write_text(page.render(), encoding="utf-8")
            print(f"Annotated page written to {args.output}", file=sys.stderr)
    finally:
        watcher.teardown()
    return 0


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    return asyncio.run(replay(args))


if __name__ == "__main__":
    sys.exit(main())
