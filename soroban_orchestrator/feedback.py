"""
feedback.py
Function table and typed client for the anonymous feedback contract.
"""

from soroban_orchestrator.contracts import ContractClient, ContractSpec, as_int, as_text, field_map, fn
from soroban_orchestrator.status import ObserverLike

FEEDBACK_CONTRACT_ID = "CBK6DMOHM7I7G3IDNQS7JAJOCJ4XVO5SLXP6KHQAWNVTKW5YHETSE5UA"


def _message(value) -> str:
    if isinstance(value, dict):
        return as_text(field_map(value)["message"])
    return as_text(value)


FEEDBACK = ContractSpec.of(
    "feedback",
    FEEDBACK_CONTRACT_ID,
    fn("send_feedback", ("message", "string"), result=as_int),
    fn("fetch_feedback", ("feedback_id", "u64"), result=_message),
)


class FeedbackClient(ContractClient):
    spec = FEEDBACK

    def send_feedback(self, caller: str, feedback_text: str, observer: ObserverLike = None) -> int:
        """Store ``feedback_text`` and return its feedback id."""
        return self.call(caller, "send_feedback", feedback_text, observer=observer).value

    def fetch_feedback(self, caller: str, feedback_id: int, observer: ObserverLike = None) -> str:
        return self.call(caller, "fetch_feedback", feedback_id, observer=observer).value
