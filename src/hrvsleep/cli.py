"""CLI for the hrvsleep HRV and sleep analytics toolkit."""

import json
import logging

import click


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """hrvsleep: HRV metrics and sleep detection from heart-rate streams."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command("analyze")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", default=None, help="Write snapshot JSON to file.")
def analyze_cmd(file: str, output: str | None) -> None:
    """Compute an HRV snapshot from a file of RR intervals (ms)."""
    from hrvsleep.analytics.snapshot import analyze_snapshot
    from hrvsleep.replay import load_rr_intervals

    try:
        intervals = load_rr_intervals(file)
        snapshot = analyze_snapshot(intervals)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    text = json.dumps(snapshot.to_dict(), indent=2)
    click.echo(text)

    if output:
        with open(output, "w") as f:
            f.write(text)
        click.echo(f"\nSnapshot written to {output}")


@main.command("replay")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", default=None, help="Write session report JSON to file.")
@click.option("--no-window", is_flag=True, help="Disable the evening/night sleep window.")
def replay_cmd(file: str, output: str | None, no_window: bool) -> None:
    """Replay a JSONL packet trace through the sleep session pipeline."""
    from hrvsleep.analytics.detection import DetectionConfig
    from hrvsleep.analytics.pipeline import run_session
    from hrvsleep.replay import load_packets

    config = DetectionConfig(sleep_window=None) if no_window else DetectionConfig()
    try:
        report = run_session(load_packets(file), detection_config=config)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"\n{'=' * 60}")
    click.echo(f"  Session: {report.packet_count} packets, {len(report.epochs)} epochs")
    click.echo(f"{'=' * 60}")
    for change in report.transitions:
        click.echo(f"  {change.timestamp:%H:%M:%S}  {change.old.value} -> {change.new.value}")
    if report.summary is not None:
        s = report.summary
        click.echo(f"  Score:      {s.sleep_score:.0f}/100")
        click.echo(f"  Duration:   {s.total_duration_min:.0f} min "
                   f"(eff {s.sleep_efficiency:.0f}%)")
        click.echo(f"  Phases:     deep {s.deep_min:.0f} / rem {s.rem_min:.0f} / "
                   f"light {s.light_min:.0f} / awake {s.awake_min:.0f} min")
    else:
        click.echo("  No classifiable epochs.")
    if report.coverage is not None and report.confidence is not None:
        c = report.coverage
        click.echo(f"  Coverage:   {c.coverage_percent:.0f}% ({c.gap_count} gap(s), "
                   f"longest {c.longest_gap_sec:.0f}s)")
        click.echo(f"  Confidence: {report.confidence.score:.0f} ({report.confidence.level.value})")
    click.echo(f"{'=' * 60}")

    if output:
        with open(output, "w") as f:
            f.write(report.to_json())
        click.echo(f"\nReport written to {output}")
    else:
        click.echo(report.to_json())


if __name__ == "__main__":
    main()
