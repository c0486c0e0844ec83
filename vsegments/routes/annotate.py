"""탐지/세그멘테이션 API 라우트"""

from fastapi import APIRouter, HTTPException, status

from vsegments.services import annotate as annotate_service

router = APIRouter(tags=["annotate"])


def _run(
    request: annotate_service.AnnotateRequest, mode: annotate_service.AnnotateMode
) -> annotate_service.AnnotateResponse:
    try:
        return annotate_service.annotate(request, mode)
    except annotate_service.AnnotateError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"code": e.code, "message": e.message},
        ) from None


@router.post(
    "/detect",
    response_model=annotate_service.AnnotateResponse,
    status_code=status.HTTP_200_OK,
)
def detect(request: annotate_service.AnnotateRequest) -> annotate_service.AnnotateResponse:
    """바운딩 박스 탐지

    동기 엔드포인트 - FastAPI가 threadpool에서 실행.
    """
    return _run(request, "detect")


@router.post(
    "/segment",
    response_model=annotate_service.AnnotateResponse,
    status_code=status.HTTP_200_OK,
)
def segment(request: annotate_service.AnnotateRequest) -> annotate_service.AnnotateResponse:
    """세그멘테이션 (응답에는 마스크 개수만 포함)"""
    return _run(request, "segment")
