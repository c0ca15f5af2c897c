import logging
import urllib.parse
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from starlette.responses import StreamingResponse

from sparks.application.services.file_service import FileService
from sparks.domain.models.file_record import FileRecord
from sparks.interfaces.dependencies import CurrentPrincipal
from sparks.interfaces.schemas import (
    DuplicateCheckResponse,
    FileRecordIn,
    Response,
    UploadUrlRequest,
    UploadUrlResponse,
)
from sparks.interfaces.service_dependencies import get_file_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/files", tags=["文件模块"])


def _to_domain(payload: FileRecordIn) -> FileRecord:
    return FileRecord(**payload.model_dump())


@router.get(
    path="",
    response_model=Response[List[FileRecord]],
    summary="获取文件列表接口",
    description="获取产品下的文件列表，可按步骤/子步骤过滤",
)
async def list_files(
    current_principal: CurrentPrincipal,
    product_id: str = Query(..., alias="productId", min_length=1),
    step_id: Optional[int] = Query(None, alias="stepId"),
    sub_step_id: Optional[int] = Query(None, alias="subStepId"),
    file_service: FileService = Depends(get_file_service),
) -> Response[List[FileRecord]]:
    records = await file_service.list_files(product_id, step_id, sub_step_id)
    return Response.success(msg="获取文件列表成功", data=records)


@router.get(
    path="/check-duplicate",
    response_model=Response[DuplicateCheckResponse],
    summary="重名检查接口",
    description="判断产品下是否已存在同名文件",
)
async def check_duplicate(
    current_principal: CurrentPrincipal,
    file_name: str = Query(..., alias="fileName"),
    product_id: str = Query(..., alias="productId", min_length=1),
    file_service: FileService = Depends(get_file_service),
) -> Response[DuplicateCheckResponse]:
    is_duplicate = await file_service.check_duplicate(file_name, product_id)
    return Response.success(
        msg="重名检查完成",
        data=DuplicateCheckResponse(is_duplicate=is_duplicate),
    )


@router.post(
    path="/pre-signed",
    response_model=Response[UploadUrlResponse],
    summary="获取预签名上传地址接口",
    description="为文件签发有时效的预签名PUT地址，客户端直接上传到对象存储",
)
async def create_upload_url(
    request: UploadUrlRequest,
    current_principal: CurrentPrincipal,
    file_service: FileService = Depends(get_file_service),
) -> Response[UploadUrlResponse]:
    upload_url = await file_service.create_upload_url(
        request.file_name, request.content_type, request.product_id
    )
    logger.info(f"用户[{current_principal.id}]获取上传地址: {request.file_name}")
    return Response.success(
        msg="获取上传地址成功",
        data=UploadUrlResponse(
            upload_url=upload_url,
            expires_in=file_service.upload_url_expiry_minutes * 60,
        ),
    )


@router.post(
    path="",
    response_model=Response[FileRecord],
    summary="提交文件记录接口",
    description="文件上传到对象存储后创建元数据记录，同名时返回409",
)
async def create_record(
    payload: FileRecordIn,
    current_principal: CurrentPrincipal,
    file_service: FileService = Depends(get_file_service),
) -> Response[FileRecord]:
    record = await file_service.create_record(_to_domain(payload))
    return Response.success(msg="文件记录创建成功", data=record)


@router.put(
    path="",
    response_model=Response[FileRecord],
    summary="替换文件记录接口",
    description="确认替换重名文件后更新已有记录，系统生成文件不可替换",
)
async def replace_record(
    payload: FileRecordIn,
    current_principal: CurrentPrincipal,
    file_service: FileService = Depends(get_file_service),
) -> Response[FileRecord]:
    record = await file_service.replace_record(_to_domain(payload))
    return Response.success(msg="文件记录替换成功", data=record)


@router.get(
    path="/download",
    summary="文件下载接口",
    description="根据产品id和文件名从对象存储下载文件",
)
async def download_file(
    current_principal: CurrentPrincipal,
    file_name: str = Query(..., alias="fileName"),
    product_id: str = Query(..., alias="productId", min_length=1),
    file_service: FileService = Depends(get_file_service),
) -> StreamingResponse:
    # 1.调用服务获取文件源数据
    content, record = await file_service.download_file(file_name, product_id)

    # 2.对文件中的中文名字进行url编码
    encoded_filename = urllib.parse.quote(record.name)

    # 3.返回文件流数据
    return StreamingResponse(
        content=iter([content]),
        media_type=record.content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=utf-8''{encoded_filename}",
            "Content-Length": str(len(content)),
        },
    )


@router.delete(
    path="/{file_id}",
    response_model=Response[dict],
    summary="删除文件接口",
    description="从对象存储和数据库中删除指定文件，系统生成文件不可删除",
)
async def delete_file(
    file_id: str,
    current_principal: CurrentPrincipal,
    file_service: FileService = Depends(get_file_service),
) -> Response[dict]:
    await file_service.delete_file(file_id)
    logger.info(f"用户[{current_principal.id}]删除文件: {file_id}")
    return Response.success(msg="删除文件成功", data={})
