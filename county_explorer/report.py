"""
Console progress report.

Prints country, state and county sections, mirroring what the map app's
progress screen shows:

    ======================================================================
      EXPLORATION PROGRESS
    ======================================================================
      United States: 3% explored (41/1372 cells)
    ...
"""

from typing import Optional

from county_explorer.aggregator import ProgressAggregator


def print_progress_report(aggregator: ProgressAggregator, country_name: str = "United States",
                          parent_code: Optional[str] = None) -> None:
    """
    Print the exploration progress report.

    Args:
        aggregator: Aggregator over the store to report on
        country_name: Label for the overall line
        parent_code: Restrict the county section to one state code
    """
    overall = aggregator.global_summary()

    print("\n" + "=" * 70)
    print("  EXPLORATION PROGRESS")
    print("=" * 70)
    print(f"  {country_name}: {overall.percent}% explored ({overall.visited}/{overall.total} cells)")

    print("\n  States:")
    states = [(name, summary) for name, summary in aggregator.state_progress() if summary.visited > 0]
    if not states:
        print("    No states visited yet")
    for name, summary in states:
        print(f"    {name:<24} {summary.percent:>3}% ({summary.visited}/{summary.total})")

    print("\n  Counties:")
    counties = aggregator.visited_regions(parent_code)
    if not counties:
        print("    No counties visited yet")
    for region in counties:
        summary = aggregator.region_summary(region.id)
        print(f"    {region.name:<24} {summary.percent:>3}% ({summary.visited}/{summary.total})  [{region.id}]")

    print("=" * 70, flush=True)
