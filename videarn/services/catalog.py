"""
Catalog Service - Plans and videos.

Plans are immutable once created. Videos are edited by admins and validated
here as well as at the API boundary, so scripts get the same rules.
"""

from urllib.parse import urlparse

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.db.models import Plan, Video
from videarn.exceptions import (
    PlanNameTakenError,
    PlanNotFoundError,
    VideoNotFoundError,
    VideoValidationError,
    WriteVerificationError,
)
from videarn.models.domain import PlanData, VideoData, VideoDraft
from videarn.services.mappers import plan_to_domain

logger = get_logger(__name__)

MIN_WATCH_DURATION_SECONDS = 1
MAX_WATCH_DURATION_SECONDS = 3600


def validate_video_draft(draft: VideoDraft) -> VideoDraft:
    """
    Check admin video input and return it with whitespace trimmed.

    Raises:
        VideoValidationError: Title missing, URL not http(s), or duration out of range
    """
    title = draft.title.strip()
    if not title:
        raise VideoValidationError("title", "Title is required")

    video_url = draft.video_url.strip()
    parsed = urlparse(video_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise VideoValidationError("video_url", "Please enter a valid http(s) URL")

    duration = draft.watch_duration_seconds
    if not MIN_WATCH_DURATION_SECONDS <= duration <= MAX_WATCH_DURATION_SECONDS:
        raise VideoValidationError(
            "watch_duration_seconds",
            f"Watch duration must be between {MIN_WATCH_DURATION_SECONDS} and "
            f"{MAX_WATCH_DURATION_SECONDS} seconds",
        )

    return VideoDraft(
        title=title,
        description=draft.description.strip(),
        video_url=video_url,
        watch_duration_seconds=duration,
    )


def _video_to_domain(video: Video) -> VideoData:
    return VideoData(
        video_id=video.id,
        title=video.title,
        description=video.description,
        video_url=video.video_url,
        watch_duration_seconds=video.watch_duration_seconds,
        created_at=video.created_at,
    )


class CatalogService:
    """Plan and video catalog."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize catalog service with database session."""
        self.session = session

    # ========================================================================
    # Plans
    # ========================================================================

    async def list_plans(self) -> list[PlanData]:
        """All plans, cheapest first."""
        stmt = select(Plan).order_by(Plan.price_minor, Plan.id)
        result = await self.session.execute(stmt)
        return [plan_to_domain(plan) for plan in result.scalars().all()]

    async def get_plan(self, plan_id: int) -> PlanData:
        plan = await self._find_plan(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan_to_domain(plan)

    async def create_plan(
        self,
        name: str,
        price_minor: int,
        daily_earning_minor: int,
        videos_per_day: int,
        validity_days: int,
    ) -> PlanData:
        """
        Create a plan.

        Raises:
            ValueError: Non-positive terms (from PlanData validation)
            PlanNameTakenError: A plan with this name exists
        """
        # Validate before touching the database
        PlanData(
            plan_id=0,
            name=name,
            price_minor=price_minor,
            daily_earning_minor=daily_earning_minor,
            videos_per_day=videos_per_day,
            validity_days=validity_days,
        )

        plan = Plan(
            name=name,
            price_minor=price_minor,
            daily_earning_minor=daily_earning_minor,
            videos_per_day=videos_per_day,
            validity_days=validity_days,
        )
        self.session.add(plan)

        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise PlanNameTakenError(name) from exc

        verified = await self.session.get(Plan, plan.id)
        if verified is None:
            raise WriteVerificationError(f"Plan {plan.id} not found after insert")

        await self.session.commit()

        logger.info("plan_created", plan_id=verified.id, name=name, price_minor=price_minor)
        return plan_to_domain(verified)

    # ========================================================================
    # Videos
    # ========================================================================

    async def list_videos(self) -> list[VideoData]:
        """All videos, newest first."""
        stmt = select(Video).order_by(Video.created_at.desc(), Video.id.desc())
        result = await self.session.execute(stmt)
        return [_video_to_domain(video) for video in result.scalars().all()]

    async def get_video(self, video_id: int) -> VideoData:
        video = await self._find_video(video_id)
        if video is None:
            raise VideoNotFoundError(video_id)
        return _video_to_domain(video)

    async def create_video(self, draft: VideoDraft) -> VideoData:
        """Add a video to the catalog."""
        draft = validate_video_draft(draft)

        video = Video(
            title=draft.title,
            description=draft.description,
            video_url=draft.video_url,
            watch_duration_seconds=draft.watch_duration_seconds,
        )
        self.session.add(video)
        await self.session.flush()

        verified = await self.session.get(Video, video.id)
        if verified is None:
            raise WriteVerificationError(f"Video {video.id} not found after insert")

        await self.session.commit()

        logger.info("video_created", video_id=verified.id, title=draft.title)
        return _video_to_domain(verified)

    async def update_video(self, video_id: int, draft: VideoDraft) -> VideoData:
        """Replace a video's editable fields."""
        draft = validate_video_draft(draft)

        video = await self._find_video(video_id)
        if video is None:
            raise VideoNotFoundError(video_id)

        video.title = draft.title
        video.description = draft.description
        video.video_url = draft.video_url
        video.watch_duration_seconds = draft.watch_duration_seconds
        await self.session.flush()
        await self.session.commit()

        logger.info("video_updated", video_id=video_id)
        return _video_to_domain(video)

    async def delete_video(self, video_id: int) -> None:
        """Delete a video; its watch facts go with it."""
        video = await self._find_video(video_id)
        if video is None:
            raise VideoNotFoundError(video_id)

        await self.session.delete(video)
        await self.session.commit()

        logger.info("video_deleted", video_id=video_id)

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _find_plan(self, plan_id: int) -> Plan | None:
        stmt = select(Plan).where(Plan.id == plan_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _find_video(self, video_id: int) -> Video | None:
        stmt = select(Video).where(Video.id == video_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
