import pytest

from core.services import otp


def test_send_then_verify(settings):
    settings.OTP_STATIC_CODE = '654321'
    challenge = otp.send_otp('919876543210')
    assert challenge == {'phoneNumber': '+919876543210', 'expiresIn': settings.OTP_TTL_SECONDS}
    assert otp.verify_otp('+91 98765 43210', '654321') == '+919876543210'


def test_code_can_only_be_used_once(settings):
    otp.send_otp('+919876543210')
    otp.verify_otp('+919876543210', settings.OTP_STATIC_CODE)
    with pytest.raises(ValueError, match='Invalid verification code'):
        otp.verify_otp('+919876543210', settings.OTP_STATIC_CODE)


def test_verify_without_challenge_fails(settings):
    with pytest.raises(ValueError):
        otp.verify_otp('+919876543210', settings.OTP_STATIC_CODE)


def test_wrong_code_keeps_challenge(settings):
    otp.send_otp('+919876543210')
    with pytest.raises(ValueError):
        otp.verify_otp('+919876543210', '000000-wrong')
    assert otp.verify_otp('+919876543210', settings.OTP_STATIC_CODE) == '+919876543210'


def test_phone_number_is_required():
    with pytest.raises(ValueError):
        otp.send_otp('   ')
