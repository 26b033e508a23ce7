import pytest

from mangostate.errors import MangoError, MangoErrorCode, check


@pytest.mark.parametrize("condition", [True, 1, [0]])
def test_check_passes_on_truthy(condition):
    assert check(condition, MangoErrorCode.INVALID_PARAM) is None


@pytest.mark.parametrize("condition", [False, 0, []])
def test_check_raises_on_falsy(condition):
    with pytest.raises(MangoError) as info:
        check(condition, MangoErrorCode.INVALID_PARAM)
    assert info.value.code is MangoErrorCode.INVALID_PARAM


@pytest.mark.parametrize("code", list(MangoErrorCode))
def test_check_raises_with_given_code(code):
    with pytest.raises(MangoError) as info:
        check(False, code)
    assert info.value.code is code
    assert str(info.value) == code.name


def test_default_code_and_message():
    err = MangoError()
    assert err.code is MangoErrorCode.DEFAULT
    custom = MangoError(MangoErrorCode.MATH_ERROR, "overflow in borrows")
    assert str(custom) == "overflow in borrows"
    assert custom.code is MangoErrorCode.MATH_ERROR


def test_codes_are_distinct():
    raised = []
    for code in MangoErrorCode:
        with pytest.raises(MangoError) as info:
            check(False, code)
        raised.append(info.value.code.value)
    assert len(raised) == len(set(raised))