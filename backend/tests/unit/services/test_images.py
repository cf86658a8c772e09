"""
Unit Tests for Image Service
"""
import pytest
from sqlalchemy.exc import OperationalError

from app.services.image_service import ImageChange, ImageService, is_default_image


class RecordingSession:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.committed = False

    async def commit(self):
        if self.fail:
            raise OperationalError('COMMIT', {}, Exception('database is gone'))
        self.committed = True


@pytest.fixture
def images(tmp_path) -> ImageService:
    service = ImageService()
    service.mode = 'local'
    service.base_dir = tmp_path.resolve()
    return service


def stored_file(images: ImageService, key: str):
    path = images.base_dir / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b'\x89PNG')
    return path


class TestCommitImageChange:

    @pytest.mark.asyncio
    async def test_replaced_image_deleted_after_commit(self, images):
        old = stored_file(images, 'users/avatars/old.png')
        new = stored_file(images, 'users/avatars/new.png')
        session = RecordingSession()

        await images.commit_image_change(session, ImageChange('users/avatars/new.png', 'users/avatars/old.png'))

        assert session.committed
        assert not old.exists()
        assert new.exists()

    @pytest.mark.asyncio
    async def test_failed_commit_keeps_replaced_image(self, images):
        old = stored_file(images, 'pets/images/old.png')
        new = stored_file(images, 'pets/images/new.png')

        with pytest.raises(OperationalError):
            await images.commit_image_change(
                RecordingSession(fail=True), ImageChange('pets/images/new.png', 'pets/images/old.png')
            )

        assert old.exists()
        assert not new.exists()

    @pytest.mark.asyncio
    async def test_default_image_is_never_deleted(self, images):
        default = stored_file(images, 'images/avatars/pets/dog.png')

        await images.commit_image_change(RecordingSession(), ImageChange(replaced='images/avatars/pets/dog.png'))

        assert default.exists()
        assert is_default_image('images/avatars/pets/dog.png')
