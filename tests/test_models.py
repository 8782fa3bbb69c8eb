import pytest

from overlay.models import ConnectionState, Detection


def test_detection_from_camel_case_payload():
    det = Detection.from_dict(
        {"className": "cube", "confidence": 0.8, "xMin": 1, "yMin": 2, "xMax": 30, "yMax": 40}
    )
    assert det == Detection("cube", 0.8, 1.0, 2.0, 30.0, 40.0)


def test_detection_from_payload_with_missing_coordinates():
    det = Detection.from_dict({"class_name": "cube", "confidence": 0.5, "x_max": 3})
    assert det.x_min is None
    assert det.x_max == 3.0
    assert det.to_dict()["y_max"] is None


@pytest.mark.parametrize(
    "event,expected",
    [
        ({"eventType": "connected"}, ConnectionState.CONNECTED),
        ({"event_type": "DISCONNECTING"}, ConnectionState.DISCONNECTING),
        ("Connecting", ConnectionState.CONNECTING),
        (ConnectionState.DISCONNECTED, ConnectionState.DISCONNECTED),
    ],
)
def test_connection_state_parse(event, expected):
    assert ConnectionState.parse(event) is expected


@pytest.mark.parametrize("event", [{"eventType": "bogus"}, {}, 3, None])
def test_connection_state_parse_rejects_unknown(event):
    with pytest.raises(ValueError):
        ConnectionState.parse(event)
