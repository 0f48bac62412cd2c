from pydantic import BaseModel, Field, field_validator


class ValidatedRecipientMixin:
    @field_validator('recipient')
    @classmethod
    def validate_recipient(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Recipient is required')
        return v


class OptionalTextMixin:
    @field_validator('sender', 'payment_instruction', 'profile_name', 'sender_profile_name')
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class HighFiveRequest(ValidatedRecipientMixin, OptionalTextMixin, BaseModel):
    recipient: str = Field(max_length=300)
    reason: str = Field(min_length=1, max_length=2000)
    amount: int = Field(default=0, ge=0, le=2_100_000_000_000_000)
    sender: str | None = Field(default=None, max_length=300)
    payment_instruction: str | None = Field(default=None, max_length=4000)
    profile_name: str | None = Field(default=None, max_length=200)
    sender_profile_name: str | None = Field(default=None, max_length=200)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v: str) -> str:
        if not v.strip():
            raise ValueError('Reason is required')
        return v


class HighFive(BaseModel):
    id: int
    recipient: str
    reason: str
    amount: int = 0
    sender: str | None = None
    created_at: str
    nostr_event_id: str | None = None
    profile_name: str | None = None
    sender_profile_name: str | None = None


class HighFiveList(BaseModel):
    items: list[HighFive]
    total: int


class PaymentInstructionResponse(BaseModel):
    kind: str
    payload: str
    display_address: str | None = None
    uri: str


class ProfileNameResponse(BaseModel):
    npub: str
    profile_name: str | None = None


class ErrorResponse(BaseModel):
    error: str
    detail: str
