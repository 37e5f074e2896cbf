import pytest

from rocketq.errors import ClientError, ErrorCode


@pytest.mark.parametrize("code", list(ErrorCode))
def test_message_matches_code(code):
    err = ClientError(code)
    assert str(err) == code.value
    assert err.code is code
    assert code.message == code.value


def test_created_message_from_source():
    assert str(ClientError(ErrorCode.CREATED)) == "consumer group has been created"


def test_start_topic_message_from_source():
    assert str(ClientError(ErrorCode.START_TOPIC)) == (
        "cannot subscribe topic since client either failed to start or has been shutdown."
    )


def test_topic_not_exist_error_carries_code_and_message():
    err = ClientError(ErrorCode.TOPIC_NOT_EXIST)
    assert err.code is ErrorCode.TOPIC_NOT_EXIST
    assert str(err) == "topic not exist"
    assert ErrorCode.TOPIC_NOT_EXIST.message == "topic not exist"


def test_codes_have_distinct_messages():
    messages = {str(ClientError(code)) for code in ErrorCode}
    assert len(messages) == len(list(ErrorCode))


def test_lookup_by_message():
    assert ErrorCode("broker can not found") is ErrorCode.BROKER_NOT_FOUND