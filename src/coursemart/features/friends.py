"""Friends view store: outgoing requests, incoming requests and friends."""

from __future__ import annotations

import logging

from coursemart.cms import CmsError, CmsGateway
from coursemart.domain import (
    CollectionKind,
    Friend,
    FriendDirection,
    FriendRequest,
    FriendRequestStatus,
    UserRef,
)
from coursemart.sync import (
    DuplicateTargetError,
    FriendLimitError,
    MutationDescriptor,
    MutationReport,
    MutationStatus,
    MutationValidationError,
    OptimisticCollection,
    SyncSession,
    TargetRef,
)
from coursemart.utils import new_temporary_id

from .base import owner_topic

DEFAULT_FRIEND_LIMIT = 1000


def direction_of(request: FriendRequest, owner: UserRef) -> FriendDirection:
    if str(request.from_user) == str(owner):
        return FriendDirection.SENT
    return FriendDirection.RECEIVED


def _recipient(request: FriendRequest) -> str:
    return str(request.to_user)


def _sender(request: FriendRequest) -> str:
    return str(request.from_user)


def _friend_key(friend: Friend) -> str:
    return str(friend.id)


class FriendsStore:
    """Friend requests in both directions plus the accepted friends list.

    Both request collections share the ``friend_request`` pending keys, so a
    request to a user and an answer to that user's request cannot overlap.
    """

    def __init__(
        self,
        session: SyncSession,
        gateway: CmsGateway,
        owner: UserRef,
        *,
        friend_limit: int = DEFAULT_FRIEND_LIMIT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.owner = owner
        self.friend_limit = friend_limit
        self._logger = logger or logging.getLogger(__name__)
        self.outgoing: OptimisticCollection[FriendRequest] = session.collection(
            CollectionKind.FRIEND_REQUEST,
            key_of=_recipient,
            topic=owner_topic(CollectionKind.FRIEND_REQUEST, owner, "sent"),
        )
        self.incoming: OptimisticCollection[FriendRequest] = session.collection(
            CollectionKind.FRIEND_REQUEST,
            key_of=_sender,
            topic=owner_topic(CollectionKind.FRIEND_REQUEST, owner, "received"),
        )
        self.friends: OptimisticCollection[Friend] = session.collection(
            CollectionKind.FRIEND,
            key_of=_friend_key,
            topic=owner_topic(CollectionKind.FRIEND, owner),
        )

    @property
    def friend_count(self) -> int:
        return self.friends.count

    def is_friend(self, user: UserRef) -> bool:
        return self.friends.contains(TargetRef.for_key(user))

    def has_outgoing(self, user: UserRef) -> bool:
        return self.outgoing.contains(TargetRef.for_key(user))

    def has_incoming(self, user: UserRef) -> bool:
        return self.incoming.contains(TargetRef.for_key(user))

    async def load(self) -> None:
        try:
            requests = await self.gateway.list_items(CollectionKind.FRIEND_REQUEST, self.owner)
            friends = await self.gateway.list_items(CollectionKind.FRIEND, self.owner)
        except CmsError as exc:
            self._logger.warning("Loading friends for %s failed: %s", self.owner, exc)
            self.session.notifier.error("Unable to load your friends")
            return
        pending = [
            request
            for request in requests
            if isinstance(request, FriendRequest) and request.status is FriendRequestStatus.PENDING
        ]
        self.outgoing.replace_all(
            request
            for request in pending
            if direction_of(request, self.owner) is FriendDirection.SENT
        )
        self.incoming.replace_all(
            request
            for request in pending
            if direction_of(request, self.owner) is FriendDirection.RECEIVED
        )
        self.friends.replace_all(friend for friend in friends if isinstance(friend, Friend))

    def close(self) -> None:
        self.outgoing.close()
        self.incoming.close()
        self.friends.close()

    async def send_request(
        self,
        to_user: UserRef,
        message: str | None = None,
    ) -> MutationReport[FriendRequest]:
        try:
            self._check_can_befriend(to_user)
            if self.has_incoming(to_user):
                msg = "This user already sent you a friend request"
                raise DuplicateTargetError(msg)
        except MutationValidationError as exc:
            return self._refuse(exc)

        placeholder = FriendRequest(
            id=new_temporary_id(),
            from_user=self.owner,
            to_user=to_user,
            message=message,
        )
        target = TargetRef.for_key(to_user)
        descriptor = MutationDescriptor.add(
            target,
            placeholder,
            failure_message="Failed to send friend request",
        )
        return await self.outgoing.execute(
            descriptor,
            lambda: self.gateway.add_item(
                CollectionKind.FRIEND_REQUEST,
                target,
                owner=self.owner,
                payload={"message": message},
            ),
            success_message="Friend request sent",
        )

    async def cancel_request(self, to_user: UserRef) -> MutationReport[FriendRequest]:
        return await self._answer(
            self.outgoing,
            to_user,
            FriendRequestStatus.CANCELLED,
            failure_message="Failed to cancel friend request",
            success_message="Friend request cancelled",
        )

    async def accept_request(self, from_user: UserRef) -> MutationReport[FriendRequest]:
        """Accept ``from_user``'s request and add them to the friends list."""

        if self.friend_count >= self.friend_limit:
            return self._refuse(self._limit_error())
        request = self.incoming.find(TargetRef.for_key(from_user))
        report = await self._answer(
            self.incoming,
            from_user,
            FriendRequestStatus.ACCEPTED,
            failure_message="Failed to accept friend request",
            success_message="Friend request accepted",
        )
        if report.status is MutationStatus.CONFIRMED:
            username = request.from_username if request is not None else None
            self.friends.absorb((Friend(id=from_user, username=username or ""),))
        return report

    async def reject_request(self, from_user: UserRef) -> MutationReport[FriendRequest]:
        return await self._answer(
            self.incoming,
            from_user,
            FriendRequestStatus.DECLINED,
            failure_message="Failed to decline friend request",
            success_message="Friend request declined",
        )

    async def unfriend(self, user: UserRef) -> MutationReport[Friend]:
        target = self._target(self.friends, user)
        descriptor: MutationDescriptor[Friend] = MutationDescriptor.remove(
            target,
            failure_message="Failed to remove friend",
        )
        return await self.friends.execute(
            descriptor,
            lambda: self.gateway.remove_item(CollectionKind.FRIEND, target, owner=self.owner),
            success_message="Friend removed",
        )

    # -- internals -----------------------------------------------------

    async def _answer(
        self,
        collection: OptimisticCollection[FriendRequest],
        user: UserRef,
        status: FriendRequestStatus,
        *,
        failure_message: str,
        success_message: str,
    ) -> MutationReport[FriendRequest]:
        target = self._target(collection, user)
        descriptor: MutationDescriptor[FriendRequest] = MutationDescriptor.remove(
            target,
            failure_message=failure_message,
        )
        return await collection.execute(
            descriptor,
            lambda: self.gateway.update_status(
                CollectionKind.FRIEND_REQUEST,
                target,
                owner=self.owner,
                status=status,
            ),
            success_message=success_message,
        )

    def _check_can_befriend(self, user: UserRef) -> None:
        if str(user) == str(self.owner):
            msg = "You cannot send a friend request to yourself"
            raise MutationValidationError(msg)
        if self.is_friend(user):
            msg = "You are already friends with this user"
            raise DuplicateTargetError(msg)
        if self.friend_count >= self.friend_limit:
            raise self._limit_error()

    def _limit_error(self) -> FriendLimitError:
        return FriendLimitError(f"You have reached the limit of {self.friend_limit} friends")

    @staticmethod
    def _target(
        collection: OptimisticCollection[FriendRequest] | OptimisticCollection[Friend],
        user: UserRef,
    ) -> TargetRef:
        record = collection.find(TargetRef.for_key(user))
        if record is None or record.is_placeholder:
            return TargetRef.for_key(user)
        return TargetRef(key=str(user), record_id=record.id, external_id=record.external_id)

    def _refuse(self, error: MutationValidationError) -> MutationReport[FriendRequest]:
        self.session.notifier.info(str(error))
        return MutationReport(MutationStatus.REFUSED, error=error)


__all__ = ["DEFAULT_FRIEND_LIMIT", "FriendsStore", "direction_of"]
