"""
Post lifecycle

    open --claim (NGO)--> claimed --complete (owning Canteen)--> completed
    open --ready_by passes (sweep)--> expired

Every transition is a single conditional write keyed on the expected prior
status, so a post is never claimed twice. Missing posts and posts in the
wrong state for a transition both surface as NotFound; a write that loses a
race after its read surfaces as Conflict.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from errors import Conflict, Forbidden, NotFound, ValidationError
from repository import AccountRepository, PostRepository
from schemas import (
    ClaimRequest, Post, PostCreateRequest, Principal,
    POST_STATUSES, ROLE_CANTEEN, ROLE_NGO,
    STATUS_CLAIMED, STATUS_COMPLETED, STATUS_OPEN,
    to_naive_utc, utcnow,
)

logger = logging.getLogger(__name__)

ALL = "all"


def _require_role(principal: Principal, role: str, action: str) -> None:
    if principal.role != role:
        logger.warning(f"{principal.role} {principal.id} may not {action} posts")
        plural = "canteens" if role == ROLE_CANTEEN else "NGOs"
        raise Forbidden(f"Forbidden. Only {plural} can {action} posts.")


def build_post_query(
    status: Optional[str] = None,
    dietary: Optional[str] = None,
    q: Optional[str] = None,
    canteen_id: Optional[str] = None,
) -> Dict[str, Any]:
    filt: Dict[str, Any] = {}
    if status and status != ALL:
        if status not in POST_STATUSES:
            raise ValidationError(f"Unknown status {status!r}")
        filt["status"] = status
    if dietary and dietary != ALL:
        filt["dietary"] = dietary
    if canteen_id:
        filt["canteen_id"] = canteen_id
    text = (q or "").strip()
    if text:
        pattern = re.escape(text)
        filt["$or"] = [
            {"canteen_name": {"$regex": pattern, "$options": "i"}},
            {"items": {"$regex": pattern, "$options": "i"}},
            {"location": {"$regex": pattern, "$options": "i"}},
        ]
    return filt


class PostLifecycle:
    def __init__(self, posts: PostRepository, accounts: Optional[AccountRepository] = None):
        self.posts = posts
        self.accounts = accounts

    def create_post(
        self,
        principal: Principal,
        fields: Union[PostCreateRequest, Mapping[str, Any]],
        now: Optional[datetime] = None,
    ) -> Post:
        _require_role(principal, ROLE_CANTEEN, "create")
        if not isinstance(fields, PostCreateRequest):
            try:
                fields = PostCreateRequest.model_validate(fields)
            except PydanticValidationError as e:
                raise ValidationError.from_pydantic(e)

        now = to_naive_utc(now) if now else utcnow()
        if fields.ready_by < now:
            raise ValidationError("ready_by must not be in the past")

        record = fields.model_dump()
        record.update({
            "canteen_id": principal.id,
            "claimed_by": None,
            "status": STATUS_OPEN,
            "created_at": now,
            "updated_at": now,
        })
        post_id = self.posts.create(record)
        logger.info(f"Canteen {principal.id} created post {post_id}")
        record["_id"] = post_id
        return Post.from_document(record)

    def get_post(self, post_id: str) -> Post:
        doc = self.posts.get_by_id(post_id)
        if not doc:
            raise NotFound("Post not found.")
        return Post.from_document(doc)

    def list_posts(
        self,
        status: Optional[str] = None,
        dietary: Optional[str] = None,
        q: Optional[str] = None,
        canteen_id: Optional[str] = None,
    ) -> List[Post]:
        query = build_post_query(status=status, dietary=dietary, q=q, canteen_id=canteen_id)
        return [Post.from_document(d) for d in self.posts.list(query)]

    def claim_post(
        self,
        principal: Principal,
        post_id: str,
        ngo_name: str,
        phone: str,
        now: Optional[datetime] = None,
    ) -> Post:
        _require_role(principal, ROLE_NGO, "claim")
        try:
            req = ClaimRequest(ngo_name=ngo_name, phone=phone)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

        doc = self.posts.get_by_id(post_id)
        if not doc or doc.get("status") != STATUS_OPEN:
            raise NotFound("Post not found or already claimed.")

        claim = {
            "ngo_id": principal.id,
            "ngo_name": req.ngo_name,
            "phone": req.phone,
            "time": to_naive_utc(now) if now else utcnow(),
        }
        updated = self.posts.update(
            post_id,
            {"status": STATUS_CLAIMED, "claimed_by": claim},
            precondition={"status": STATUS_OPEN},
        )
        if updated is None:
            logger.warning(f"NGO {principal.id} lost the claim race on post {post_id}")
            raise Conflict("Post was claimed by another NGO.")
        logger.info(f"NGO {principal.id} claimed post {post_id}")
        return Post.from_document(updated)

    def complete_post(self, principal: Principal, post_id: str) -> Post:
        _require_role(principal, ROLE_CANTEEN, "complete")
        doc = self.posts.get_by_id(post_id)
        if not doc or doc.get("status") != STATUS_CLAIMED:
            raise NotFound("Post not found or not claimed.")
        if doc.get("canteen_id") != principal.id:
            logger.warning(f"Canteen {principal.id} tried to complete post {post_id} it does not own")
            raise Forbidden("Forbidden. Only the owning canteen can complete this post.")

        updated = self.posts.update(
            post_id,
            {"status": STATUS_COMPLETED},
            precondition={"status": STATUS_CLAIMED, "canteen_id": principal.id},
        )
        if updated is None:
            raise Conflict("Post changed while completing it.")
        logger.info(f"Canteen {principal.id} completed post {post_id}")
        return Post.from_document(updated)

    def delete_post(self, principal: Principal, post_id: str) -> Dict[str, Any]:
        _require_role(principal, ROLE_CANTEEN, "delete")
        doc = self.posts.get_by_id(post_id)
        if not doc:
            raise NotFound("Post not found.")
        if doc.get("canteen_id") != principal.id:
            logger.warning(f"Canteen {principal.id} tried to delete post {post_id} it does not own")
            raise Forbidden("Forbidden. Only the owning canteen can delete this post.")
        if not self.posts.delete(post_id):
            raise NotFound("Post not found.")
        logger.info(f"Canteen {principal.id} deleted post {post_id}")
        return {"message": "Post deleted successfully.", "id": post_id}

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """Move open posts whose ready_by has passed to expired."""
        count = self.posts.expire_overdue(now or utcnow())
        if count:
            logger.info(f"Expired {count} overdue post(s)")
        return count

    def overview(self) -> Dict[str, int]:
        counts = dict(self.posts.count_by_status())
        counts["posts"] = sum(counts.values())
        if self.accounts is not None:
            counts.update(self.accounts.count_by_role())
        return counts
