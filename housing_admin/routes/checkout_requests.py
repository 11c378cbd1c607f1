from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends

from ..auth.security import actor_name, get_current_user
from ..baas.client import get_baas
from ..baas.provider import BaaSProvider
from ..baas.query import Query
from ..config import settings
from ..errors import surface_errors, validation_error
from ..schemas.checkout import ApproveIn, CheckoutRequestIn, RejectIn, StatusChangeIn
from ..services import checkout


logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/checkout-requests", tags=["checkout-requests"])


def _apply(baas: BaaSProvider, request_id: str, fields: Dict[str, Any], message: str) -> Dict[str, Any]:
    with surface_errors(message, request_id=request_id):
        updated = baas.update_document(settings.checkout_requests_collection_id, request_id, fields)
    logger.info("checkout_request_status_changed", request_id=request_id, status=fields["status"], action_by=fields["actionBy"])
    return updated


@router.get("")
def list_requests(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 0,
    page_size: int = 10,
    baas: BaaSProvider = Depends(get_baas),
    _=Depends(get_current_user),
):
    with surface_errors("Error fetching checkout requests"):
        checkout.auto_complete_expired(baas)
        return checkout.list_requests(baas, status=status, search=search, page=page, page_size=page_size)


@router.post("/sweep")
def run_sweep(baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Error auto-completing checkout requests"):
        return {"completed": checkout.auto_complete_expired(baas)}


@router.get("/students")
def list_students(baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Error fetching students"):
        students = baas.list_all(settings.users_collection_id, [
            Query.equal("role", "student"),
            Query.not_equal("isDeleted", True),
        ])
    return {"total": len(students), "documents": students}


@router.get("/students/{user_id}")
def get_student_details(user_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Error fetching student details", user_id=user_id):
        return checkout.student_details(baas, user_id)


@router.get("/{request_id}")
def get_request(request_id: str, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    with surface_errors("Checkout request not found", request_id=request_id):
        request = baas.get_document(settings.checkout_requests_collection_id, request_id)
        students = checkout.load_students(baas, [request["userId"]] if request.get("userId") else [])
    return checkout.with_student(request, students.get(request.get("userId")))


@router.post("", status_code=201)
def create_request(payload: CheckoutRequestIn, baas: BaaSProvider = Depends(get_baas), _=Depends(get_current_user)):
    data = payload.model_dump()
    errors = checkout.validate_create(data)
    if errors:
        raise validation_error(errors)
    with surface_errors("Error creating checkout request"):
        created = baas.create_document(settings.checkout_requests_collection_id, checkout.build_request(data))
    logger.info("checkout_request_created", request_id=created["$id"], number=created.get("requestId"))
    return checkout.with_student(created, None)


@router.post("/{request_id}/approve")
def approve_request(
    request_id: str,
    payload: ApproveIn,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    return _apply(baas, request_id, checkout.approval(actor_name(user), payload.notes), "Error approving checkout request")


@router.post("/{request_id}/reject")
def reject_request(
    request_id: str,
    payload: RejectIn,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    try:
        fields = checkout.rejection(actor_name(user), payload.reason)
    except ValueError as e:
        raise validation_error({"reason": str(e)}, message=str(e)) from e
    return _apply(baas, request_id, fields, "Error rejecting checkout request")


@router.post("/{request_id}/complete")
def complete_request(
    request_id: str,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    return _apply(baas, request_id, checkout.completion(actor_name(user)), "Error completing checkout request")


@router.post("/{request_id}/status")
def change_status(
    request_id: str,
    payload: StatusChangeIn,
    baas: BaaSProvider = Depends(get_baas),
    user: Dict[str, Any] = Depends(get_current_user),
):
    try:
        fields = checkout.status_change(payload.status, actor_name(user))
    except ValueError as e:
        raise validation_error({"status": str(e)}, message=str(e)) from e
    return _apply(baas, request_id, fields, "Error changing checkout request status")
