import typing as tp

import httpx

__all__ = ("MockTransport",)

MockedResponse = tp.Union[httpx.Response, Exception]


class MockTransport(httpx.BaseTransport):
    """
    Replays queued responses in order and remembers every request it saw.

    A queued exception is raised instead of answering, which is how tests
    simulate timeouts and refused connections.
    """

    def __init__(self, responses: tp.Optional[tp.List[MockedResponse]] = None) -> None:
        self.mocked_responses: tp.List[MockedResponse] = []
        self.requests: tp.List[httpx.Request] = []
        if responses:
            self.add_responses(responses)

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.mocked_responses:
            raise httpx.ConnectError("No mocked response left", request=request)
        mocked = self.mocked_responses.pop(0)
        if isinstance(mocked, Exception):
            raise mocked
        return mocked

    def add_responses(self, responses: tp.List[MockedResponse]) -> None:
        self.mocked_responses.extend(responses)
