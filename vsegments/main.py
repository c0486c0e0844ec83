from fastapi import FastAPI

from vsegments.routes.annotate import router as annotate_router

app = FastAPI(title="vsegments")

app.include_router(annotate_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
