"""
Participant repository.

Data access layer for Participant model.
"""


from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import MAX_LEVEL
from donation_matrix.models.participant import Participant
from donation_matrix.repositories.base import BaseRepository
from donation_matrix.utils.datetime_utils import utc_now
from donation_matrix.utils.exceptions import (
    ErrorCode,
    MatrixNotFoundError,
    MatrixValidationError,
)


class ParticipantRepository(BaseRepository[Participant]):
    """Participant repository with level bookkeeping."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize participant repository."""
        super().__init__(Participant, session)

    async def get_or_raise(
        self, participant_id: int, for_update: bool = False
    ) -> Participant:
        """Get participant or raise not-found."""
        participant = await self.get_by_id(participant_id, for_update=for_update)
        if participant is None:
            raise MatrixNotFoundError(
                f"Participant {participant_id} not found",
                code=ErrorCode.PARTICIPANT_NOT_FOUND,
            )
        return participant

    async def get_current_level(self, participant_id: int) -> int:
        """
        Get the level a participant has advanced to.

        Args:
            participant_id: Participant ID

        Returns:
            Current level (1-3)
        """
        participant = await self.get_or_raise(participant_id)
        return participant.current_level

    async def set_current_level(
        self, participant_id: int, level: int
    ) -> Participant:
        """
        Set a participant's level. Levels never go down.

        Args:
            participant_id: Participant ID
            level: New level (1-3)

        Returns:
            Updated participant
        """
        participant = await self.get_or_raise(participant_id, for_update=True)

        if level > MAX_LEVEL:
            raise MatrixValidationError(
                f"Level {level} exceeds maximum level {MAX_LEVEL}",
                code=ErrorCode.INVALID_LEVEL,
            )
        if level < participant.current_level:
            raise MatrixValidationError(
                f"Participant {participant_id} cannot move down from "
                f"level {participant.current_level} to {level}",
                code=ErrorCode.LEVEL_DECREASE,
            )

        participant.current_level = level
        await self.session.flush()
        return participant

    async def mark_reentry_eligible(self, participant_id: int) -> Participant:
        """
        Flag a participant who finished N3 as able to re-enter.

        Args:
            participant_id: Participant ID

        Returns:
            Updated participant
        """
        participant = await self.get_or_raise(participant_id, for_update=True)
        participant.can_reenter = True
        if participant.n3_completed_at is None:
            participant.n3_completed_at = utc_now()
        await self.session.flush()
        return participant

    async def get_levels(self, participant_ids: list[int]) -> dict[int, int]:
        """
        Get current levels for several participants in one query.

        Args:
            participant_ids: Participant IDs

        Returns:
            Dict mapping participant ID to current level
        """
        if not participant_ids:
            return {}

        stmt = select(Participant.id, Participant.current_level).where(
            Participant.id.in_(participant_ids)
        )
        result = await self.session.execute(stmt)
        return {row.id: row.current_level for row in result.all()}
