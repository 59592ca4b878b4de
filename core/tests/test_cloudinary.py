import pytest
import requests
from django.core.files.uploadedfile import SimpleUploadedFile

from core.exceptions import ImageUploadError
from core.services import cloudinary

URL = 'https://res.cloudinary.com/demo/image/upload/v1712/cervix/abc.jpg'


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        return self._payload


def _image(name='cervix.jpg', content_type='image/jpeg'):
    return SimpleUploadedFile(name, b'\xff\xd8\xff\xe0fake-jpeg', content_type=content_type)


def test_effects_are_inserted_after_upload_segment():
    out = cloudinary.apply_transformations(URL, brightness=20, contrast=-10)
    assert out == 'https://res.cloudinary.com/demo/image/upload/e_brightness:20,e_contrast:-10/v1712/cervix/abc.jpg'


def test_sharpness_maps_to_sharpen_effect():
    out = cloudinary.apply_transformations(URL, saturation=15, sharpness=50)
    assert '/upload/e_saturation:15,e_sharpen:50/v1712/' in out


def test_no_adjustments_keep_original_url():
    assert cloudinary.apply_transformations(URL) == URL
    assert cloudinary.apply_transformations(URL, brightness=0, contrast=0, saturation=0, sharpness=0) == URL


def test_url_without_upload_segment_is_left_alone():
    other = 'https://example.com/images/abc.jpg'
    assert cloudinary.apply_transformations(other, brightness=10) == other


@pytest.mark.parametrize('kwargs', [
    {'brightness': 101},
    {'contrast': -101},
    {'saturation': 500},
    {'sharpness': -1},
])
def test_out_of_range_adjustments_are_rejected(kwargs):
    with pytest.raises(ValueError):
        cloudinary.build_transformation(**kwargs)


def test_upload_posts_preset_and_returns_secure_url(monkeypatch, settings):
    settings.CLOUDINARY_CLOUD_NAME = 'demo'
    settings.CLOUDINARY_UPLOAD_PRESET = 'cervi_preset'
    calls = {}

    def fake_post(url, data=None, files=None, timeout=None):
        calls.update(url=url, data=data, files=files, timeout=timeout)
        return FakeResponse(200, {'secure_url': URL, 'public_id': 'cervix/abc', 'bytes': 1234})

    monkeypatch.setattr(cloudinary.requests, 'post', fake_post)
    assert cloudinary.upload_image(_image()) == URL
    assert calls['url'] == 'https://api.cloudinary.com/v1_1/demo/image/upload'
    assert calls['data'] == {'upload_preset': 'cervi_preset'}
    assert calls['files']['file'][0] == 'cervix.jpg'
    assert calls['timeout'] == settings.CLOUDINARY_TIMEOUT


def test_upload_error_message_is_surfaced(monkeypatch):
    monkeypatch.setattr(
        cloudinary.requests, 'post',
        lambda *a, **kw: FakeResponse(400, {'error': {'message': 'Upload preset not found'}}),
    )
    with pytest.raises(ImageUploadError, match='Upload preset not found'):
        cloudinary.upload_image(_image())


def test_upload_network_failure_becomes_upload_error(monkeypatch):
    def boom(*a, **kw):
        raise requests.ConnectionError('connection refused')

    monkeypatch.setattr(cloudinary.requests, 'post', boom)
    with pytest.raises(ImageUploadError):
        cloudinary.upload_image(_image())


def test_upload_rejects_non_images(monkeypatch):
    monkeypatch.setattr(cloudinary.requests, 'post', lambda *a, **kw: pytest.fail('should not upload'))
    with pytest.raises(ValueError, match='Unsupported file type'):
        cloudinary.upload_image(_image('report.pdf', 'application/pdf'))


def test_upload_rejects_large_files(settings):
    settings.UPLOAD_MAX_MB = 0
    with pytest.raises(ValueError, match='File too large'):
        cloudinary.validate_upload(_image())
