from fastapi import APIRouter, Query, Request

from common.responses import success_json
from config.config import settings
from dependencies import UploadDirDep, UploadIngestorDep

router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.post("",
    summary="Upload files",
    description="Store every file of a multipart/form-data request; stops at the first rejected file",
    status_code=201
)
async def upload_files(
    request: Request,
    ingestor: UploadIngestorDep,
    upload_dir: UploadDirDep,
    rename: bool = Query(settings.upload_rename_files, description="Store under a random name keeping the original extension"),
):
    files = await ingestor.ingest_batch(request, upload_dir, rename=rename)
    return success_json(
        data=files,
        message=f"{len(files)} file(s) uploaded",
        status_code=201,
    )


@router.post("/single",
    summary="Upload a single file",
    description="Store the first file of a multipart/form-data request",
    status_code=201
)
async def upload_single_file(
    request: Request,
    ingestor: UploadIngestorDep,
    upload_dir: UploadDirDep,
    rename: bool = Query(settings.upload_rename_files, description="Store under a random name keeping the original extension"),
):
    uploaded = await ingestor.ingest_one(request, upload_dir, rename=rename)
    return success_json(
        data=uploaded,
        message=f"File '{uploaded.original_name}' uploaded",
        status_code=201,
    )
