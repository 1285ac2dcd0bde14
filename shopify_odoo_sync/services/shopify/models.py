from datetime import datetime
from decimal import Decimal
from typing import Generic, TypeVar

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field

NodeT = TypeVar("NodeT")


class BaseModel(PydanticBaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Identifiable(BaseModel):
    id: str | None = None


class KeyVal(BaseModel):
    key: str = ""
    value: str | None = ""


class Count(BaseModel):
    count: float = 0
    precision: str = ""


class Money(BaseModel):
    amount: Decimal = Decimal(0)
    currency_code: str = Field("", alias="currencyCode")


class MoneyBag(BaseModel):
    shop_money: Money = Field(default_factory=Money, alias="shopMoney")
    presentment_money: Money = Field(default_factory=Money, alias="presentmentMoney")

    @property
    def amount(self) -> Decimal:
        return self.shop_money.amount


class Edge(BaseModel, Generic[NodeT]):
    cursor: str | None = None
    node: NodeT


class Edges(BaseModel, Generic[NodeT]):
    edges: list[Edge[NodeT]] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.edges)

    def nodes(self) -> list[NodeT]:
        return [edge.node for edge in self.edges]

    def get(self, index: int) -> NodeT:
        return self.edges[index].node

    def cursor(self, index: int) -> str | None:
        return self.edges[index].cursor


class EmailAddress(BaseModel):
    email_address: str | None = Field("", alias="emailAddress")


class PhoneNumber(BaseModel):
    phone_number: str | None = Field("", alias="phoneNumber")


class Address(BaseModel):
    """Shape shared by customer mailing addresses and company location addresses."""

    id: str | None = None
    phone: str | None = ""
    address1: str | None = ""
    address2: str | None = ""
    city: str | None = ""
    zip: str | None = ""

    # MailingAddress
    name: str | None = ""
    company: str | None = ""
    customer_province_code: str | None = Field("", alias="provinceCode")
    customer_country_code: str | None = Field("", alias="countryCodeV2")

    # CompanyAddress
    first_name: str | None = Field("", alias="firstName")
    last_name: str | None = Field("", alias="lastName")
    company_name: str | None = Field("", alias="companyName")
    recipient: str | None = ""
    location_province_code: str | None = Field("", alias="zoneCode")
    location_country_code: str | None = Field("", alias="countryCode")

    def province_code(self) -> str:
        return self.customer_province_code or self.location_province_code or ""

    def country_code(self) -> str:
        return self.customer_country_code or self.location_country_code or ""


class CompanyContact(BaseModel):
    id: str | None = None
    company: Identifiable | None = None
    customer: Identifiable | None = None
    title: str | None = ""
    is_main_contact: bool = Field(False, alias="isMainContact")


class Customer(BaseModel):
    id: str | None = None
    display_name: str | None = Field("", alias="displayName")
    default_email_address: EmailAddress | None = Field(None, alias="defaultEmailAddress")
    default_phone_number: PhoneNumber | None = Field(None, alias="defaultPhoneNumber")
    default_address: Address | None = Field(None, alias="defaultAddress")
    company_contacts: list[CompanyContact] = Field(default_factory=list, alias="companyContactProfiles")

    @property
    def email(self) -> str:
        return (self.default_email_address.email_address if self.default_email_address else "") or ""

    @property
    def phone(self) -> str:
        return (self.default_phone_number.phone_number if self.default_phone_number else "") or ""


class CompanyLocation(BaseModel):
    id: str | None = None
    phone: str | None = ""
    note: str | None = ""
    billing_address: Address | None = Field(None, alias="billingAddress")
    shipping_address: Address | None = Field(None, alias="shippingAddress")


class Company(BaseModel):
    id: str | None = None
    name: str = ""
    note: str | None = ""
    main_contact: CompanyContact | None = Field(None, alias="mainContact")
    locations_count: Count = Field(default_factory=Count, alias="locationsCount")
    locations: Edges[CompanyLocation] = Field(default_factory=Edges[CompanyLocation])


class OrderTaxLine(BaseModel):
    price: MoneyBag = Field(default_factory=MoneyBag, alias="priceSet")
    rate_percentage: float = Field(0.0, alias="ratePercentage")
    title: str = ""


class OrderLine(BaseModel):
    id: str | None = None
    name: str = ""
    sku: str | None = ""
    quantity: int = Field(0, alias="currentQuantity")
    unit_price: MoneyBag = Field(default_factory=MoneyBag, alias="discountedUnitPriceSet")
    tax_lines: list[OrderTaxLine] = Field(default_factory=list, alias="taxLines")


class OrderShippingLine(BaseModel):
    id: str | None = None
    title: str = ""
    carrier_identifier: str | None = Field("", alias="carrierIdentifier")
    code: str | None = ""
    delivery_category: str | None = Field("", alias="deliveryCategory")
    source: str | None = ""
    price: MoneyBag = Field(default_factory=MoneyBag, alias="discountedPriceSet")
    tax_lines: list[OrderTaxLine] = Field(default_factory=list, alias="taxLines")


class OrderParentTransaction(BaseModel):
    id: str | None = None
    kind: str = ""
    status: str = ""
    amount_set: MoneyBag = Field(default_factory=MoneyBag, alias="amountSet")
    total_unsettled_set: MoneyBag = Field(default_factory=MoneyBag, alias="totalUnsettledSet")
    authorization_expires_at: datetime | None = Field(None, alias="authorizationExpiresAt")

    @property
    def amount(self) -> Decimal:
        return self.amount_set.amount

    @property
    def unsettled_amount(self) -> Decimal:
        return self.total_unsettled_set.amount


class OrderTransaction(OrderParentTransaction):
    parent_transaction: OrderParentTransaction | None = Field(None, alias="parentTransaction")


class Order(BaseModel):
    id: str | None = None
    name: str = ""
    created_at: datetime | None = Field(None, alias="createdAt")
    status_page_url: str | None = Field("", alias="statusPageUrl")
    delivery_instructions: KeyVal | None = Field(None, alias="deliveryInstructions")
    purchase_order: KeyVal | None = Field(None, alias="purchaseOrder")
    customer: Identifiable | None = None
    custom_attributes: list[KeyVal] = Field(default_factory=list, alias="customAttributes")
    billing_address: Address | None = Field(None, alias="billingAddress")
    shipping_address: Address | None = Field(None, alias="shippingAddress")
    lines: Edges[OrderLine] = Field(default_factory=Edges[OrderLine], alias="lineItems")
    shipping_line: OrderShippingLine | None = Field(None, alias="shippingLine")
    transactions: list[OrderTransaction] = Field(default_factory=list)

    def custom_attribute(self, key: str) -> str:
        for attribute in self.custom_attributes:
            if attribute.key == key:
                return attribute.value or ""
        return ""

    def transaction(self, transaction_gid: str) -> OrderTransaction | None:
        for transaction in self.transactions:
            if transaction.id == transaction_gid:
                return transaction
        return None
