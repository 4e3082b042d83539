"""
SQLite State Store for QDAO

Durable backing store for a GovernanceState: member set, proposal table
keyed by id, vote table keyed by (proposal id, address), and the scalar
counters and parameters. Each save replaces the stored state inside one
SQLite transaction. The event log is not persisted.
"""
import json
import os
from typing import Any, Dict, Optional

import aiosqlite

from .constants import STATE_SCHEMA_VERSION
from .governance.state import GovernanceState
from .logger import get_logger

logger = get_logger(__name__)


class StateStore:
    """aiosqlite-backed persistence for one governance engine."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.connection: Optional[aiosqlite.Connection] = None

    @staticmethod
    async def create(db_path: str) -> "StateStore":
        """Open (and initialize if needed) the store at *db_path*."""
        self = StateStore(db_path)

        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        self.connection = await aiosqlite.connect(db_path)
        self.connection.row_factory = aiosqlite.Row

        if db_path != ":memory:":
            await self.connection.execute("PRAGMA journal_mode=WAL")
            await self.connection.execute("PRAGMA synchronous=NORMAL")

        await self._init_schema()

        logger.info(f"SQLite state store initialized: {db_path}")
        return self

    async def _init_schema(self):
        """Initialize database schema"""
        schema = """
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS members (
            address TEXT PRIMARY KEY,
            joined_at INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS proposals (
            id INTEGER PRIMARY KEY,
            proposer TEXT NOT NULL,
            description TEXT NOT NULL,
            value TEXT NOT NULL,
            recipient TEXT NOT NULL,
            created_at INTEGER NOT NULL,
            voting_deadline INTEGER NOT NULL,
            votes_for INTEGER NOT NULL DEFAULT 0,
            votes_against INTEGER NOT NULL DEFAULT 0,
            executed BOOLEAN NOT NULL DEFAULT 0,
            executed_at INTEGER
        );

        CREATE TABLE IF NOT EXISTS votes (
            proposal_id INTEGER NOT NULL,
            voter TEXT NOT NULL,
            support BOOLEAN NOT NULL,
            cast_at INTEGER NOT NULL,
            PRIMARY KEY (proposal_id, voter),
            FOREIGN KEY (proposal_id) REFERENCES proposals(id)
        );

        CREATE INDEX IF NOT EXISTS idx_votes_voter ON votes(voter);
        CREATE INDEX IF NOT EXISTS idx_proposals_executed ON proposals(executed);
        """

        await self.connection.executescript(schema)
        await self.connection.commit()

    async def close(self):
        """Close database connection"""
        if self.connection:
            await self.connection.close()
            self.connection = None
            logger.info(f"SQLite state store closed: {self.db_path}")

    async def __aenter__(self) -> "StateStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ── Save ──────────────────────────────────────────────────────────

    async def save(self, state: GovernanceState) -> None:
        """Replace the stored state with *state* atomically."""
        data = state.to_dict()
        meta = {
            "schema_version": str(STATE_SCHEMA_VERSION),
            "owner": data["owner"],
            "parameters": json.dumps(data["parameters"]),
            "deployed_at": str(data["deployedAt"]),
            "last_timestamp": json.dumps(data["lastTimestamp"]),
            "balance": data["balance"],
            "member_count": str(data["memberCount"]),
            "proposal_count": str(data["proposalCount"]),
        }

        try:
            for table in ("votes", "proposals", "members", "meta"):
                await self.connection.execute(f"DELETE FROM {table}")

            await self.connection.executemany(
                "INSERT INTO meta (key, value) VALUES (?, ?)",
                list(meta.items()),
            )
            await self.connection.executemany(
                "INSERT INTO members (address, joined_at) VALUES (?, ?)",
                [(m["address"], m["joinedAt"]) for m in data["members"]],
            )
            await self.connection.executemany(
                """
                INSERT INTO proposals (
                    id, proposer, description, value, recipient, created_at,
                    voting_deadline, votes_for, votes_against, executed, executed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        p["id"], p["proposer"], p["description"], p["value"],
                        p["recipient"], p["createdAt"], p["votingDeadline"],
                        p["votesFor"], p["votesAgainst"], int(p["executed"]),
                        p["executedAt"],
                    )
                    for p in data["proposals"]
                ],
            )
            await self.connection.executemany(
                "INSERT INTO votes (proposal_id, voter, support, cast_at) VALUES (?, ?, ?, ?)",
                [
                    (v["proposalId"], v["voter"], int(v["support"]), v["castAt"])
                    for v in data["votes"]
                ],
            )
            await self.connection.commit()
        except Exception:
            await self.connection.rollback()
            logger.exception(f"Failed to persist governance state to {self.db_path}")
            raise

        logger.debug(
            f"Governance state saved: members={data['memberCount']} "
            f"proposals={data['proposalCount']} votes={len(data['votes'])}"
        )

    # ── Load ──────────────────────────────────────────────────────────

    async def _meta(self) -> Dict[str, str]:
        cursor = await self.connection.execute("SELECT key, value FROM meta")
        rows = await cursor.fetchall()
        return {row["key"]: row["value"] for row in rows}

    async def load(self) -> Optional[GovernanceState]:
        """Rebuild the stored state, or None if nothing was saved yet."""
        meta = await self._meta()
        if not meta:
            return None

        cursor = await self.connection.execute(
            "SELECT address, joined_at FROM members ORDER BY joined_at, address"
        )
        members = [
            {"address": row["address"], "joinedAt": row["joined_at"]}
            for row in await cursor.fetchall()
        ]

        cursor = await self.connection.execute("SELECT * FROM proposals ORDER BY id")
        proposals = [
            {
                "id": row["id"],
                "proposer": row["proposer"],
                "description": row["description"],
                "value": row["value"],
                "recipient": row["recipient"],
                "createdAt": row["created_at"],
                "votingDeadline": row["voting_deadline"],
                "votesFor": row["votes_for"],
                "votesAgainst": row["votes_against"],
                "executed": bool(row["executed"]),
                "executedAt": row["executed_at"],
            }
            for row in await cursor.fetchall()
        ]

        cursor = await self.connection.execute(
            "SELECT proposal_id, voter, support, cast_at FROM votes ORDER BY proposal_id, cast_at"
        )
        votes = [
            {
                "proposalId": row["proposal_id"],
                "voter": row["voter"],
                "support": bool(row["support"]),
                "castAt": row["cast_at"],
            }
            for row in await cursor.fetchall()
        ]

        data: Dict[str, Any] = {
            "schemaVersion": int(meta["schema_version"]),
            "owner": meta["owner"],
            "parameters": json.loads(meta["parameters"]),
            "deployedAt": int(meta["deployed_at"]),
            "lastTimestamp": json.loads(meta["last_timestamp"]),
            "balance": meta["balance"],
            "proposalCount": int(meta["proposal_count"]),
            "members": members,
            "proposals": proposals,
            "votes": votes,
        }
        state = GovernanceState.from_dict(data)
        logger.info(
            f"Governance state loaded from {self.db_path}: "
            f"members={state.member_count} proposals={state.proposal_count}"
        )
        return state
