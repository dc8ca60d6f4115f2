"""SQLite storage layer for padelbracket.

Provides ORM models and repository pattern for data persistence.
Repositories only flush; the caller owns the transaction through
DatabaseManager.session_scope().
"""

import json
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from padelbracket.errors import ConcurrencyConflict, NotFound
from padelbracket.models import (
    Bracket,
    BracketFormat,
    BracketStatus,
    Match,
    MatchStatus,
    SeedingMethod,
    SetScore,
    StandingEntry,
    config_to_dict,
    parse_bracket_config,
)

Base = declarative_base()

MEMORY_DB = ":memory:"


# ============================================================================
# ORM Models
# ============================================================================


class BracketORM(Base):
    """Bracket table.

    One bracket per tournament category. The format-specific config is
    stored as JSON and parsed into its typed variant on load.
    """

    __tablename__ = "brackets"

    id = Column(String(36), primary_key=True)
    tournament_id = Column(String(64), nullable=False, index=True)
    category_id = Column(Integer, nullable=False)
    format = Column(String(20), nullable=False)  # knockout, round_robin, groups_knockout, ...
    seeding_method = Column(String(10), nullable=False)  # random, manual, ranking
    status = Column(String(10), nullable=False, default="draft")  # draft, published
    config_json = Column(Text, nullable=False, default="{}")
    knockout_generated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def config(self) -> dict:
        """Get config from JSON."""
        return json.loads(self.config_json)

    @config.setter
    def config(self, value: dict):
        """Set config as JSON."""
        self.config_json = json.dumps(value)


class MatchORM(Base):
    """Match table."""

    __tablename__ = "matches"

    id = Column(String(36), primary_key=True)
    bracket_id = Column(String(36), ForeignKey("brackets.id"), nullable=False, index=True)
    round_number = Column(Integer, nullable=False)
    match_number = Column(Integer, nullable=False)
    round_name = Column(String(50), nullable=True)
    team1_id = Column(String(64), nullable=True)  # None for BYE or TBD
    team2_id = Column(String(64), nullable=True)  # None for BYE or TBD
    # Store sets as JSON: [{"team1": 6, "team2": 4}, {"team1": 7, "team2": 6, "tiebreak": {...}}]
    sets_json = Column(Text, nullable=False, default="[]")
    winner_team = Column(Integer, nullable=True)  # 1, 2 or None
    status = Column(String(20), nullable=False, default="pending")
    next_match_id = Column(String(36), nullable=True)
    next_match_position = Column(Integer, nullable=True)
    loser_next_match_id = Column(String(36), nullable=True)
    loser_next_match_position = Column(Integer, nullable=True)
    group_number = Column(Integer, nullable=True)
    is_bye = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def sets(self) -> list[dict]:
        """Get sets from JSON."""
        return json.loads(self.sets_json)

    @sets.setter
    def sets(self, value: list[dict]):
        """Set sets as JSON."""
        self.sets_json = json.dumps(value)


class StandingORM(Base):
    """Standing table (derived, replaced wholesale on recompute)."""

    __tablename__ = "standings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bracket_id = Column(String(36), ForeignKey("brackets.id"), nullable=False, index=True)
    team_id = Column(String(64), nullable=False)
    group_number = Column(Integer, nullable=True)
    position = Column(Integer, nullable=False)
    total_points = Column(Integer, nullable=False, default=0)
    matches_played = Column(Integer, nullable=False, default=0)
    matches_won = Column(Integer, nullable=False, default=0)
    matches_lost = Column(Integer, nullable=False, default=0)
    games_won = Column(Integer, nullable=False, default=0)
    games_lost = Column(Integer, nullable=False, default=0)
    round_reached = Column(String(30), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# Converters
# ============================================================================


def bracket_from_orm(row: BracketORM) -> Bracket:
    bracket_format = BracketFormat(row.format)
    return Bracket(
        id=row.id,
        tournament_id=row.tournament_id,
        category_id=row.category_id,
        format=bracket_format,
        seeding_method=SeedingMethod(row.seeding_method),
        status=BracketStatus(row.status),
        config=parse_bracket_config(bracket_format, row.config),
        knockout_generated=row.knockout_generated,
    )


def match_from_orm(row: MatchORM) -> Match:
    return Match(
        id=row.id,
        bracket_id=row.bracket_id,
        round_number=row.round_number,
        match_number=row.match_number,
        round_name=row.round_name,
        team1_id=row.team1_id,
        team2_id=row.team2_id,
        sets=[SetScore.from_dict(s) for s in row.sets],
        winner_team=row.winner_team,
        status=MatchStatus(row.status),
        next_match_id=row.next_match_id,
        next_match_position=row.next_match_position,
        loser_next_match_id=row.loser_next_match_id,
        loser_next_match_position=row.loser_next_match_position,
        group_number=row.group_number,
        is_bye=row.is_bye,
        version=row.version,
    )


def _apply_match(row: MatchORM, match: Match) -> None:
    row.round_number = match.round_number
    row.match_number = match.match_number
    row.round_name = match.round_name
    row.team1_id = match.team1_id
    row.team2_id = match.team2_id
    row.sets = [s.to_dict() for s in match.sets]
    row.winner_team = match.winner_team
    row.status = match.status.value
    row.next_match_id = match.next_match_id
    row.next_match_position = match.next_match_position
    row.loser_next_match_id = match.loser_next_match_id
    row.loser_next_match_position = match.loser_next_match_position
    row.group_number = match.group_number
    row.is_bye = match.is_bye


def standing_from_orm(row: StandingORM) -> StandingEntry:
    return StandingEntry(
        bracket_id=row.bracket_id,
        team_id=row.team_id,
        position=row.position,
        total_points=row.total_points,
        matches_played=row.matches_played,
        matches_won=row.matches_won,
        matches_lost=row.matches_lost,
        games_won=row.games_won,
        games_lost=row.games_lost,
        round_reached=row.round_reached,
        group_number=row.group_number,
    )


# ============================================================================
# Database Manager
# ============================================================================


class DatabaseManager:
    """Manages SQLite database connection, sessions and per-bracket locks."""

    def __init__(self, db_path: str = ".padelbracket/brackets.sqlite"):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file, or ":memory:"
        """
        if db_path == MEMORY_DB:
            self.db_path = None
            # One shared connection so every session sees the same database
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

            # Use NullPool for SQLite to avoid connection pool issues
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                poolclass=NullPool,
                connect_args={"check_same_thread": False},
            )
        self.SessionLocal = sessionmaker(bind=self.engine)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def create_tables(self):
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self):
        """Drop all tables (use with caution!)."""
        Base.metadata.drop_all(self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Session wrapped in one transaction: commit on success, rollback on error."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def bracket_lock(self, bracket_id: str) -> Iterator[None]:
        """Hold the single-writer lock of a bracket."""
        with self._locks_guard:
            lock = self._locks.setdefault(bracket_id, threading.Lock())
        with lock:
            yield


# ============================================================================
# Repository Pattern
# ============================================================================


class BracketRepository:
    """Repository for Bracket operations."""

    def __init__(self, session: Session):
        self.session = session

    def _get_row(self, bracket_id: str) -> BracketORM:
        row = self.session.query(BracketORM).filter(BracketORM.id == bracket_id).first()
        if row is None:
            raise NotFound(f"Bracket {bracket_id} not found")
        return row

    def create(self, bracket: Bracket) -> Bracket:
        """Insert a new bracket.

        Args:
            bracket: Bracket domain model

        Returns:
            The stored bracket
        """
        row = BracketORM(
            id=bracket.id,
            tournament_id=bracket.tournament_id,
            category_id=bracket.category_id,
            format=bracket.format.value,
            seeding_method=bracket.seeding_method.value,
            status=bracket.status.value,
            config_json=json.dumps(config_to_dict(bracket.config)),
            knockout_generated=bracket.knockout_generated,
        )
        self.session.add(row)
        self.session.flush()
        return bracket_from_orm(row)

    def get_by_id(self, bracket_id: str) -> Bracket:
        """Get bracket by ID.

        Raises:
            NotFound: If no bracket has this ID
        """
        return bracket_from_orm(self._get_row(bracket_id))

    def find_by_category(self, tournament_id: str, category_id: int) -> Optional[Bracket]:
        """Get the bracket of a tournament category, if any."""
        row = (
            self.session.query(BracketORM)
            .filter(BracketORM.tournament_id == tournament_id, BracketORM.category_id == category_id)
            .first()
        )
        return bracket_from_orm(row) if row else None

    def get_all(self) -> list[Bracket]:
        return [bracket_from_orm(row) for row in self.session.query(BracketORM).all()]

    def update(self, bracket: Bracket) -> Bracket:
        """Write format, status, config and knockout flag of an existing bracket."""
        row = self._get_row(bracket.id)
        row.format = bracket.format.value
        row.status = bracket.status.value
        row.seeding_method = bracket.seeding_method.value
        row.config = config_to_dict(bracket.config)
        row.knockout_generated = bracket.knockout_generated
        self.session.flush()
        return bracket_from_orm(row)


class MatchRepository:
    """Repository for Match operations."""

    def __init__(self, session: Session):
        self.session = session

    def create_many(self, matches: list[Match]) -> list[Match]:
        """Insert generated matches.

        Args:
            matches: Match domain models (ids already assigned)

        Returns:
            Stored matches
        """
        rows = []
        for match in matches:
            row = MatchORM(id=match.id, bracket_id=match.bracket_id, version=0)
            _apply_match(row, match)
            self.session.add(row)
            rows.append(row)
        self.session.flush()
        return [match_from_orm(row) for row in rows]

    def get_by_id(self, match_id: str) -> Match:
        """Get match by ID.

        Raises:
            NotFound: If no match has this ID
        """
        row = self.session.query(MatchORM).filter(MatchORM.id == match_id).first()
        if row is None:
            raise NotFound(f"Match {match_id} not found")
        return match_from_orm(row)

    def get_by_bracket(self, bracket_id: str) -> list[Match]:
        """Get all matches of a bracket ordered by match number."""
        rows = (
            self.session.query(MatchORM)
            .filter(MatchORM.bracket_id == bracket_id)
            .order_by(MatchORM.match_number)
            .all()
        )
        return [match_from_orm(row) for row in rows]

    def update_many(self, matches: list[Match]) -> list[Match]:
        """Write changed matches, checking each row's version.

        Args:
            matches: Modified copies carrying the version they were read at

        Returns:
            Stored matches with their new version

        Raises:
            NotFound: If a match row is missing
            ConcurrencyConflict: If a row changed since it was read
        """
        rows = []
        for match in matches:
            row = self.session.query(MatchORM).filter(MatchORM.id == match.id).first()
            if row is None:
                raise NotFound(f"Match {match.id} not found")
            if row.version != match.version:
                raise ConcurrencyConflict(
                    f"Match {match.match_number} was modified concurrently "
                    f"(expected version {match.version}, found {row.version})"
                )
            _apply_match(row, match)
            row.version = row.version + 1
            rows.append(row)
        self.session.flush()
        return [match_from_orm(row) for row in rows]

    def delete_many(self, match_ids: list[str]) -> int:
        """Delete matches by ID.

        Returns:
            Number of deleted rows
        """
        if not match_ids:
            return 0
        count = (
            self.session.query(MatchORM)
            .filter(MatchORM.id.in_(match_ids))
            .delete(synchronize_session=False)
        )
        self.session.flush()
        return count

    def delete_by_bracket(self, bracket_id: str) -> int:
        count = self.session.query(MatchORM).filter(MatchORM.bracket_id == bracket_id).delete(synchronize_session=False)
        self.session.flush()
        return count


class StandingRepository:
    """Repository for StandingEntry operations."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_bracket(self, bracket_id: str, group_number: Optional[int] = None) -> list[StandingEntry]:
        """Get stored standings ordered by group and position."""
        query = self.session.query(StandingORM).filter(StandingORM.bracket_id == bracket_id)
        if group_number is not None:
            query = query.filter(StandingORM.group_number == group_number)
        rows = query.order_by(StandingORM.group_number, StandingORM.position).all()
        return [standing_from_orm(row) for row in rows]

    def replace_for_bracket(self, bracket_id: str, standings: list[StandingEntry]) -> int:
        """Drop the bracket's standings and store a freshly computed set.

        Returns:
            Number of stored rows
        """
        self.session.query(StandingORM).filter(StandingORM.bracket_id == bracket_id).delete(synchronize_session=False)
        for entry in standings:
            self.session.add(
                StandingORM(
                    bracket_id=bracket_id,
                    team_id=entry.team_id,
                    group_number=entry.group_number,
                    position=entry.position,
                    total_points=entry.total_points,
                    matches_played=entry.matches_played,
                    matches_won=entry.matches_won,
                    matches_lost=entry.matches_lost,
                    games_won=entry.games_won,
                    games_lost=entry.games_lost,
                    round_reached=entry.round_reached,
                )
            )
        self.session.flush()
        return len(standings)
