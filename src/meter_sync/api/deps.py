"""FastAPI dependencies resolving the service objects held on app.state."""

from fastapi import Request

from meter_sync.db.gateway import StoreGateway
from meter_sync.monitor import ConnectivityMonitor
from meter_sync.sync.delivery import ReadingDeliveryClient
from meter_sync.sync.upload import ReadingUploader


def get_gateway(request: Request) -> StoreGateway:
    return request.app.state.gateway


def get_delivery(request: Request) -> ReadingDeliveryClient:
    return request.app.state.delivery


def get_uploader(request: Request) -> ReadingUploader:
    return request.app.state.uploader


def get_monitor(request: Request) -> ConnectivityMonitor:
    return request.app.state.monitor
