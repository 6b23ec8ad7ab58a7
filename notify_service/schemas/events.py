"""Platform event payloads (booking / payment / social / chat)"""
from typing import Optional, Union

from pydantic import BaseModel


class BookingEvent(BaseModel):
    bookingId: Union[int, str]
    bookingNumber: Optional[str] = None
    userId: Union[int, str]
    gameId: Optional[Union[int, str]] = None
    courseName: Optional[str] = None
    gameName: Optional[str] = None
    bookingDate: str
    bookingTime: Optional[str] = None
    timeSlot: Optional[str] = None
    reason: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.gameName or self.courseName or ""

    @property
    def display_time(self) -> str:
        return self.timeSlot or self.bookingTime or ""

    @property
    def reference(self) -> str:
        return str(self.bookingNumber or self.bookingId)


class PaymentEvent(BaseModel):
    paymentId: str
    bookingId: Union[int, str]
    userId: Union[int, str]
    amount: float
    status: Optional[str] = None
    failureReason: Optional[str] = None


class FriendRequestEvent(BaseModel):
    requestId: int
    fromUserId: Union[int, str]
    toUserId: Union[int, str]
    fromUserName: str
    message: Optional[str] = None


class FriendAcceptedEvent(BaseModel):
    requestId: int
    fromUserId: Union[int, str]
    toUserId: Union[int, str]
    fromUserName: str
    toUserName: str


class ChatMessageEvent(BaseModel):
    chatRoomId: str
    senderId: Union[int, str]
    senderName: str
    recipientId: Union[int, str]
    messagePreview: str


class EventResult(BaseModel):
    success: bool
    notification_id: Optional[int] = None
    error: Optional[str] = None
