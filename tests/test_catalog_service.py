"""
Tests for CatalogService and video draft validation.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from tests.factories import create_mock_plan, create_mock_video, execute_result
from videarn.db.models import Plan, Video
from videarn.exceptions import (
    PlanNameTakenError,
    PlanNotFoundError,
    VideoNotFoundError,
    VideoValidationError,
)
from videarn.models.domain import VideoDraft
from videarn.services.catalog import CatalogService, validate_video_draft


def make_draft(**overrides) -> VideoDraft:
    fields = {
        "title": "Saving on groceries",
        "description": "Five tips",
        "video_url": "https://videos.example.com/groceries.mp4",
        "watch_duration_seconds": 45,
    }
    fields.update(overrides)
    return VideoDraft(**fields)


@pytest.fixture
def service(db_session) -> CatalogService:
    return CatalogService(db_session)


class TestValidateVideoDraft:
    """Tests for validate_video_draft."""

    def test_trims_whitespace(self):
        draft = validate_video_draft(
            make_draft(title="  Padded  ", video_url=" https://v.example.com/a.mp4 ")
        )

        assert draft.title == "Padded"
        assert draft.video_url == "https://v.example.com/a.mp4"

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"title": "   "}, "title"),
            ({"video_url": "ftp://files.example.com/a.mp4"}, "video_url"),
            ({"video_url": "not a url"}, "video_url"),
            ({"video_url": "https://"}, "video_url"),
            ({"watch_duration_seconds": 0}, "watch_duration_seconds"),
            ({"watch_duration_seconds": 3601}, "watch_duration_seconds"),
        ],
    )
    def test_rejects_invalid_input(self, overrides, field):
        with pytest.raises(VideoValidationError) as exc_info:
            validate_video_draft(make_draft(**overrides))

        assert exc_info.value.field == field

    @pytest.mark.parametrize("duration", [1, 3600])
    def test_duration_bounds_inclusive(self, duration):
        assert validate_video_draft(make_draft(watch_duration_seconds=duration))


class TestPlans:
    """Tests for plan listing and creation."""

    async def test_list_plans(self, service, db_session):
        db_session.execute = AsyncMock(
            return_value=execute_result(
                scalars=[create_mock_plan(1, "Starter"), create_mock_plan(2, "Gold", 500000)]
            )
        )

        plans = await service.list_plans()

        assert [p.name for p in plans] == ["Starter", "Gold"]

    async def test_get_unknown_plan(self, service):
        with patch.object(service, "_find_plan", AsyncMock(return_value=None)):
            with pytest.raises(PlanNotFoundError):
                await service.get_plan(9)

    async def test_create_plan(self, service, db_session, identity_map):
        plan = await service.create_plan(
            name="Gold",
            price_minor=500000,
            daily_earning_minor=20000,
            videos_per_day=5,
            validity_days=60,
        )

        assert plan.name == "Gold"
        assert plan.validity_days == 60
        assert len(identity_map.added_of(Plan)) == 1
        db_session.commit.assert_awaited_once()

    async def test_create_plan_rejects_zero_price(self, service, db_session):
        with pytest.raises(ValueError, match="price"):
            await service.create_plan("Free", 0, 100, 1, 30)

        db_session.add.assert_not_called()

    async def test_duplicate_name(self, service, db_session):
        db_session.flush = AsyncMock(
            side_effect=IntegrityError("INSERT INTO plans", {}, Exception("dup"))
        )

        with pytest.raises(PlanNameTakenError) as exc_info:
            await service.create_plan("Starter", 100000, 5000, 3, 30)

        assert exc_info.value.name == "Starter"
        db_session.rollback.assert_awaited_once()


class TestVideos:
    """Tests for video CRUD."""

    async def test_create_video(self, service, identity_map):
        video = await service.create_video(make_draft(title=" Budgeting "))

        assert video.title == "Budgeting"
        [row] = identity_map.added_of(Video)
        assert row.watch_duration_seconds == 45

    async def test_create_invalid_video_never_writes(self, service, db_session):
        with pytest.raises(VideoValidationError):
            await service.create_video(make_draft(watch_duration_seconds=-1))

        db_session.add.assert_not_called()

    async def test_update_video(self, service, db_session):
        video = create_mock_video()

        with patch.object(service, "_find_video", AsyncMock(return_value=video)):
            result = await service.update_video(video.id, make_draft(watch_duration_seconds=90))

        assert result.watch_duration_seconds == 90
        assert video.title == "Saving on groceries"
        db_session.commit.assert_awaited_once()

    async def test_update_unknown_video(self, service):
        with patch.object(service, "_find_video", AsyncMock(return_value=None)):
            with pytest.raises(VideoNotFoundError):
                await service.update_video(404, make_draft())

    async def test_delete_video(self, service, db_session):
        video = create_mock_video()

        with patch.object(service, "_find_video", AsyncMock(return_value=video)):
            await service.delete_video(video.id)

        db_session.delete.assert_awaited_once_with(video)
        db_session.commit.assert_awaited_once()

    async def test_delete_unknown_video(self, service, db_session):
        with patch.object(service, "_find_video", AsyncMock(return_value=None)):
            with pytest.raises(VideoNotFoundError):
                await service.delete_video(404)

        db_session.delete.assert_not_awaited()
