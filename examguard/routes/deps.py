from fastapi import Request

from examguard.proctor import Proctor


def get_proctor(request: Request) -> Proctor:
    return request.app.state.proctor
