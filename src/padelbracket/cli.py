"""Command-line interface for padelbracket."""

import click

from padelbracket.config_loader import ConfigError, configure_logging, load_and_validate_config
from padelbracket.errors import BracketError, ValidationFailed
from padelbracket.models import (
    BracketFormat,
    Invalid,
    Match,
    MatchFormat,
    ScoringFormat,
    SeedingMethod,
    SetScore,
)


def _service(ctx: click.Context):
    """Build the service from the config given to the command group."""
    from padelbracket.service import BracketService
    from padelbracket.storage import DatabaseManager

    cfg = ctx.obj["config"]
    db = DatabaseManager(cfg["database_path"])
    db.create_tables()
    return BracketService(db, cfg)


def _parse_sets(values: tuple[str, ...]) -> list[SetScore]:
    return [SetScore.parse(value) for value in values]


def _echo_match(match: Match) -> None:
    sets = " ".join(str(s) for s in match.sets) or "-"
    group = f" G{match.group_number}" if match.group_number is not None else ""
    click.echo(
        f"  #{match.match_number:<3} R{match.round_number}{group} {match.round_name or '':<14} "
        f"{match.team1_id or 'TBD':>12} vs {match.team2_id or 'TBD':<12} "
        f"[{match.status.value}] {sets}  id={match.id}"
    )


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config", "config_path", required=False, help="Path to config YAML file")
@click.pass_context
def cli(ctx: click.Context, config_path: str):
    """Padel bracket engine - generate brackets, record scores, compute standings."""
    try:
        cfg = load_and_validate_config(config_path)
    except ConfigError as e:
        click.echo(f"[ERROR] Config error: {e}", err=True)
        raise click.Abort()
    configure_logging(cfg["log_level"])
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@cli.command()
@click.pass_context
def init_db(ctx: click.Context):
    """Create the database tables.

    Example:
        padelbracket --config config/sample_config.yaml init-db
    """
    _service(ctx)
    click.echo(f"[INFO] Database ready at {ctx.obj['config']['database_path']}")


@cli.command()
@click.option("--tournament", required=True, help="Tournament ID")
@click.option("--category", required=True, type=int, help="Category ID")
@click.option(
    "--format",
    "bracket_format",
    type=click.Choice([f.value for f in BracketFormat]),
    default="knockout",
    help="Bracket format",
)
@click.option("--seeding", type=click.Choice([m.value for m in SeedingMethod]), default="manual")
@click.option("--team", "teams", multiple=True, required=True, help="Team ID (repeat, in seed order for manual)")
@click.option("--ranking", "rankings", multiple=True, help="TEAM=SCORE ranking for ranking seeding (repeat)")
@click.option("--third-place", is_flag=True, help="Add a third place match")
@click.option("--matchdays", is_flag=True, help="Split round robins into circle-method rounds")
@click.option("--groups", "group_count", type=int, help="Number of groups (groups_knockout, omit with --teams-per-group for automatic groups)")
@click.option("--teams-per-group", type=int, help="Teams per group (groups_knockout)")
@click.option("--advancing", type=int, help="Teams advancing per group (groups_knockout)")
@click.option("--wildcards", type=int, default=0, help="Best next-placed teams that also advance")
@click.option("--seed", "random_seed", type=int, help="Random seed for a reproducible draw")
@click.pass_context
def generate(
    ctx: click.Context,
    tournament: str,
    category: int,
    bracket_format: str,
    seeding: str,
    teams: tuple[str, ...],
    rankings: tuple[str, ...],
    third_place: bool,
    matchdays: bool,
    group_count: int,
    teams_per_group: int,
    advancing: int,
    wildcards: int,
    random_seed: int,
):
    """Generate the bracket of a tournament category.

    Example:
        padelbracket generate --tournament T1 --category 1 --team a --team b --team c
    """
    fmt = BracketFormat(bracket_format)
    raw_config = {"third_place_match": third_place, "use_matchdays": matchdays}
    if fmt == BracketFormat.GROUPS_KNOCKOUT:
        raw_config.update(
            {
                "group_count": group_count,
                "teams_per_group": teams_per_group,
                "advancing_per_group": advancing,
                "wildcard_count": wildcards,
            }
        )
        raw_config = {k: v for k, v in raw_config.items() if v is not None}

    ranking_scores = {}
    for item in rankings:
        team_id, _, score = item.partition("=")
        try:
            ranking_scores[team_id] = float(score)
        except ValueError:
            click.echo(f"[ERROR] Invalid ranking '{item}' (expected TEAM=SCORE)", err=True)
            raise click.Abort()

    try:
        service = _service(ctx)
        bracket, matches = service.generate_bracket(
            list(teams),
            fmt,
            SeedingMethod(seeding),
            raw_config,
            tournament_id=tournament,
            category_id=category,
            rankings=ranking_scores or None,
            random_seed=random_seed,
        )
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    click.echo(f"[SUCCESS] {bracket} with {len(matches)} matches")
    click.echo(f"[INFO] Bracket ID: {bracket.id}")
    for match in matches:
        _echo_match(match)


@cli.command()
@click.argument("bracket_id")
@click.pass_context
def show(ctx: click.Context, bracket_id: str):
    """Show a bracket and its matches."""
    try:
        bracket, matches = _service(ctx).get_bracket(bracket_id)
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    click.echo(f"{bracket} tournament={bracket.tournament_id} category={bracket.category_id} phase={bracket.phase}")
    for match in matches:
        _echo_match(match)


@cli.command()
@click.argument("sets", nargs=-1, required=True)
@click.option("--games-per-set", type=int, default=6)
@click.option("--total-sets", type=int, default=3)
@click.option("--tiebreak/--no-tiebreak", default=True, help="Allow 7-5 and 7-6 sets")
@click.option("--express-points", type=int, help="Use express scoring to this many points")
def validate_score(sets: tuple[str, ...], games_per_set: int, total_sets: int, tiebreak: bool, express_points: int):
    """Check a score without storing it.

    Sets are written 6-4, tiebreak sets 7-6:7-5.

    Example:
        padelbracket validate-score 6-4 3-6 7-6:7-4
    """
    from padelbracket.engine import validate_score as engine_validate_score

    try:
        if express_points is not None:
            match_format = MatchFormat(ScoringFormat.EXPRESS, total_sets=total_sets, points_per_set=express_points)
        else:
            match_format = MatchFormat(
                ScoringFormat.CLASSIC,
                games_per_set=games_per_set,
                total_sets=total_sets,
                allow_tiebreak=tiebreak,
            )
        result = engine_validate_score(_parse_sets(sets), match_format)
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    if isinstance(result, Invalid):
        click.echo(f"[ERROR] Invalid score: {result.reason}", err=True)
        raise click.Abort()
    click.echo(f"[SUCCESS] Valid score: team {result.winner} wins {result.sets_won[0]}-{result.sets_won[1]}")


@cli.command()
@click.argument("match_id")
@click.argument("sets", nargs=-1, required=True)
@click.pass_context
def record_score(ctx: click.Context, match_id: str, sets: tuple[str, ...]):
    """Record a match score and advance the winner.

    Example:
        padelbracket record-score <match-id> 6-4 6-3
    """
    try:
        result = _service(ctx).record_score(match_id, _parse_sets(sets))
    except ValidationFailed as e:
        click.echo(f"[ERROR] Invalid score: {e.reason}", err=True)
        raise click.Abort()
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    if not result.changed:
        click.echo("[INFO] Score already recorded, nothing changed")
        return
    click.echo(f"[SUCCESS] Match {result.match.match_number} completed, winner: {result.match.winner_id}")
    for successor in result.successors:
        _echo_match(successor)


@cli.command()
@click.argument("bracket_id")
@click.argument("team_id")
@click.pass_context
def withdraw(ctx: click.Context, bracket_id: str, team_id: str):
    """Withdraw a team, forfeiting its unfinished matches."""
    try:
        result = _service(ctx).withdraw_team(bracket_id, team_id)
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    click.echo(f"[SUCCESS] Team withdrawn. {len(result.forfeited_match_ids)} match(es) forfeited.")
    for match_id in result.forfeited_match_ids:
        click.echo(f"  forfeited: {match_id}")


@cli.command()
@click.argument("bracket_id")
@click.option("--group", "group_number", type=int, help="Only this group")
@click.pass_context
def standings(ctx: click.Context, bracket_id: str, group_number: int):
    """Compute standings from match results."""
    try:
        entries = _service(ctx).compute_standings(bracket_id, group_number)
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    if not entries:
        click.echo("[WARNING] No standings yet")
        return

    current_group = object()
    for entry in entries:
        if entry.group_number != current_group:
            current_group = entry.group_number
            if current_group is not None:
                click.echo(f"\nGroup {current_group}")
        reached = f" {entry.round_reached}" if entry.round_reached else ""
        click.echo(
            f"  {entry.position:>2}. {entry.team_id:<12} {entry.total_points:>4} pts "
            f"{entry.matches_won}W-{entry.matches_lost}L games {entry.games_won}-{entry.games_lost}"
            f" ({entry.point_difference:+d}){reached}"
        )


@cli.command()
@click.argument("bracket_id")
@click.pass_context
def publish(ctx: click.Context, bracket_id: str):
    """Publish a draft bracket (cannot be undone)."""
    try:
        bracket = _service(ctx).publish_bracket(bracket_id)
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()
    click.echo(f"[SUCCESS] {bracket}")


@cli.command()
@click.argument("bracket_id")
@click.argument("team1_id")
@click.argument("team2_id")
@click.pass_context
def swap_teams(ctx: click.Context, bracket_id: str, team1_id: str, team2_id: str):
    """Exchange two teams between groups before their matches start.

    Example:
        padelbracket swap-teams <bracket-id> t1 t6
    """
    try:
        _, groups = _service(ctx).swap_teams_in_groups(bracket_id, team1_id, team2_id)
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    click.echo(f"[SUCCESS] Swapped {team1_id} and {team2_id}")
    for group in groups:
        click.echo(f"  {group.group_name}: {', '.join(group.team_ids)}")


@cli.command()
@click.argument("bracket_id")
@click.option("--delete", is_flag=True, help="Delete an unplayed knockout phase instead")
@click.pass_context
def knockout(ctx: click.Context, bracket_id: str, delete: bool):
    """Generate the knockout phase of a groups_knockout bracket."""
    try:
        service = _service(ctx)
        if delete:
            deleted = service.delete_knockout_phase(bracket_id)
            click.echo(f"[SUCCESS] Knockout phase deleted ({deleted} matches)")
            return
        matches = service.generate_knockout_from_groups(bracket_id)
    except BracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    click.echo(f"[SUCCESS] Knockout phase generated with {len(matches)} matches")
    for match in matches:
        _echo_match(match)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", default=8000, help="Port to bind to")
def serve(host: str, port: int):
    """Launch the HTTP API.

    The API reads its config from the PADELBRACKET_CONFIG environment variable.

    Example:
        padelbracket serve --port 8080
    """
    import uvicorn
    from padelbracket.webapp.app import app

    click.echo(f"[INFO] Starting API at http://{host}:{port}")
    click.echo("[INFO] Press CTRL+C to stop")

    try:
        uvicorn.run(app, host=host, port=port, log_level="info")
    except KeyboardInterrupt:
        click.echo("\n[INFO] Shutting down...")


if __name__ == "__main__":
    cli()
