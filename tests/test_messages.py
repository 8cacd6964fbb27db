import unittest

from pydantic import ValidationError

from worldmeet.models import (
    JoinMessage,
    LeaveMessage,
    SignalDelivery,
    SignalMessage,
    parse_client_message,
    parse_server_message,
)
from worldmeet.utils import negotiation_role


class TestClientMessages(unittest.TestCase):
    def test_parses_each_type(self):
        self.assertIsInstance(
            parse_client_message('{"type": "join", "display_name": "A", "region_tag": "US"}'),
            JoinMessage,
        )
        self.assertIsInstance(
            parse_client_message({"type": "signal", "target_connection_id": "b", "kind": "candidate"}),
            SignalMessage,
        )
        self.assertIsInstance(parse_client_message({"type": "leave"}), LeaveMessage)

    def test_unknown_signal_kind_rejected(self):
        with self.assertRaises(ValidationError):
            parse_client_message({"type": "signal", "target_connection_id": "b", "kind": "sdp-offer"})

    def test_server_only_type_rejected_from_client(self):
        with self.assertRaises(ValidationError):
            parse_client_message({"type": "waiting"})

    def test_join_requires_attributes(self):
        with self.assertRaises(ValidationError):
            parse_client_message({"type": "join", "display_name": "A"})


class TestServerMessages(unittest.TestCase):
    def test_partner_left_uses_hyphenated_type(self):
        self.assertEqual(parse_server_message('{"type": "partner-left"}').type, "partner-left")

    def test_signal_delivery_keeps_payload(self):
        message = parse_server_message(
            {"type": "signal", "sender_connection_id": "a", "kind": "answer", "payload": {"sdp": "x"}}
        )
        self.assertIsInstance(message, SignalDelivery)
        self.assertEqual(message.payload, {"sdp": "x"})


class TestNegotiationRole(unittest.TestCase):
    def test_roles_are_complementary(self):
        self.assertEqual(negotiation_role("abc", "abd"), "initiator")
        self.assertEqual(negotiation_role("abd", "abc"), "responder")


if __name__ == "__main__":
    unittest.main()
