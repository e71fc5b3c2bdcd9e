from datetime import date, datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, Field
from .base import BaseModelWithID


ContractStatus = Literal[
    "draft",
    "pending_signature",
    "partially_signed",
    "fully_signed",
    "active",
    "expired",
    "cancelled",
    "voided",
]

ContractTemplate = Literal[
    "standard_endorsement",
    "social_media_campaign",
    "appearance_agreement",
    "merchandise_licensing",
    "autograph_session",
    "camp_participation",
    "custom",
]

PartyType = Literal["athlete", "brand", "guardian", "witness"]
SignatureStatus = Literal["pending", "signed", "declined", "expired"]

TERMINAL_CONTRACT_STATUSES = frozenset({"cancelled", "voided"})
SIGNABLE_CONTRACT_STATUSES = frozenset({"pending_signature", "partially_signed"})


class ContractClause(BaseModel):
    """Single clause of a contract"""
    id: Optional[str] = None
    title: str = ""
    content: str = ""
    is_required: bool = True
    is_editable: bool = False
    order: int = Field(default=0, ge=0)


class SignaturePartyInput(BaseModel):
    """Signer as supplied when drafting.

    Missing name or email is reported with the other draft violations.
    """
    party_type: PartyType
    user_id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    title: Optional[str] = None


class SignatureParty(BaseModelWithID):
    """Signature record for one party of a contract"""
    contract_id: str
    party_type: PartyType
    user_id: Optional[str] = None
    name: str
    email: str
    title: Optional[str] = None
    signature_status: SignatureStatus = "pending"
    signature_type: Optional[Literal["drawn", "typed", "uploaded"]] = None
    signature_data: Optional[str] = None
    signature_ip: Optional[str] = None
    signed_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None
    decline_reason: Optional[str] = None


class Contract(BaseModelWithID):
    """Signable agreement attached to a deal"""
    deal_id: str
    athlete_id: Optional[str] = None
    brand_id: Optional[str] = None
    template_type: ContractTemplate = "custom"
    title: str
    description: Optional[str] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    compensation_amount: float = 0
    compensation_terms: Optional[str] = None
    deliverables_summary: Optional[str] = None
    clauses: List[ContractClause] = Field(default_factory=list)
    custom_terms: Optional[str] = None
    requires_guardian_signature: bool = False
    requires_witness: bool = False
    status: ContractStatus = "draft"
    sent_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    parties: List[SignatureParty] = Field(default_factory=list)

    def to_document(self) -> dict:
        return self.model_dump(
            mode="json", exclude={"id", "created_at", "updated_at", "parties"}
        )

    def party(self, party_type: str) -> Optional[SignatureParty]:
        for party in self.parties:
            if party.party_type == party_type:
                return party
        return None


class ContractDraftCreate(BaseModel):
    """Model for drafting a contract for a deal"""
    deal_id: str = Field(..., min_length=1)
    template_type: ContractTemplate = "custom"
    title: Optional[str] = Field(default=None, max_length=300)
    description: Optional[str] = Field(default=None, max_length=2000)
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    compensation_amount: Optional[float] = None
    compensation_terms: Optional[str] = Field(default=None, max_length=2000)
    deliverables_summary: Optional[str] = Field(default=None, max_length=3000)
    clauses: Optional[List[ContractClause]] = Field(default=None, max_length=50)
    parties: List[SignaturePartyInput] = Field(default_factory=list, max_length=10)
    custom_terms: Optional[str] = Field(default=None, max_length=10000)
    requires_guardian_signature: bool = False
    requires_witness: bool = False


class ContractUpdate(BaseModel):
    """Model for editing a contract before anyone has signed"""
    title: Optional[str] = Field(default=None, min_length=1, max_length=300)
    description: Optional[str] = Field(default=None, max_length=2000)
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    compensation_amount: Optional[float] = None
    compensation_terms: Optional[str] = Field(default=None, max_length=2000)
    deliverables_summary: Optional[str] = Field(default=None, max_length=3000)
    clauses: Optional[List[ContractClause]] = Field(default=None, max_length=50)
    custom_terms: Optional[str] = Field(default=None, max_length=10000)


class ContractOptions(BaseModel):
    """Optional contract settings supplied when accepting an application"""
    template_type: Optional[ContractTemplate] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    compensation_terms: Optional[str] = None
    deliverables_summary: Optional[str] = None
    clauses: Optional[List[ContractClause]] = None
    guardian: Optional[SignaturePartyInput] = None
    witness: Optional[SignaturePartyInput] = None


class SignContractRequest(BaseModel):
    """Model for signing a contract"""
    party_type: PartyType
    signature_data: str = Field(..., min_length=1, max_length=50000)
    signature_type: Literal["drawn", "typed", "uploaded"] = "typed"
    agreed_to_terms: bool = False
    ip_address: Optional[str] = Field(default=None, max_length=45)


class DeclineContractRequest(BaseModel):
    """Model for declining to sign"""
    party_type: PartyType
    reason: Optional[str] = Field(default=None, max_length=1000)


class VoidContractRequest(BaseModel):
    """Model for voiding a contract"""
    reason: str = Field(..., min_length=1, max_length=1000)


class SignatureSummary(BaseModel):
    party_type: PartyType
    name: str
    status: SignatureStatus
    signed_at: Optional[datetime] = None


class ContractStatusSummary(BaseModel):
    """Current signature state of a contract"""
    contract_status: ContractStatus
    signatures: List[SignatureSummary]
    all_signed: bool
    can_sign: bool
