from dataclasses import dataclass


@dataclass(frozen=True)
class ShopifyQuery:
    result_key: str
    query: str


MAILING_ADDRESS_FRAGMENT = """
fragment MailingAddressFields on MailingAddress {
  id
  name
  phone
  address1
  address2
  city
  provinceCode
  countryCodeV2
  zip
}
"""

COMPANY_CONTACT_FRAGMENT = """
fragment CompanyContactFields on CompanyContact {
  id
  company {
    id
  }
  customer {
    id
  }
  title
  isMainContact
}
"""

CUSTOMER_FRAGMENT = (
    COMPANY_CONTACT_FRAGMENT
    + MAILING_ADDRESS_FRAGMENT
    + """
fragment CustomerFields on Customer {
  id
  displayName
  defaultEmailAddress {
    emailAddress
  }
  defaultPhoneNumber {
    phoneNumber
  }
  defaultAddress {
    ...MailingAddressFields
  }
  companyContactProfiles {
    ...CompanyContactFields
  }
}
"""
)

COMPANY_ADDRESS_FRAGMENT = """
fragment CompanyAddressFields on CompanyAddress {
  id
  firstName
  lastName
  companyName
  recipient
  address1
  address2
  city
  zoneCode
  countryCode
  zip
  phone
}
"""

COMPANY_LOCATION_FRAGMENT = (
    COMPANY_ADDRESS_FRAGMENT
    + """
fragment CompanyLocationFields on CompanyLocation {
  id
  phone
  note
  billingAddress {
    ...CompanyAddressFields
  }
  shippingAddress {
    ...CompanyAddressFields
  }
}
"""
)

COMPANY_FRAGMENT = (
    COMPANY_CONTACT_FRAGMENT
    + COMPANY_LOCATION_FRAGMENT
    + """
fragment CompanyFields on Company {
  id
  name
  note
  mainContact {
    ...CompanyContactFields
  }
  locationsCount {
    count
    precision
  }
  locations(first: 1) {
    edges {
      cursor
      node {
        ...CompanyLocationFields
      }
    }
  }
}
"""
)

MONEY_BAG_FRAGMENT = """
fragment MoneyFields on MoneyV2 {
  amount
  currencyCode
}

fragment MoneyBagFields on MoneyBag {
  shopMoney {
    ...MoneyFields
  }
  presentmentMoney {
    ...MoneyFields
  }
}
"""

ORDER_MINIMAL_FRAGMENT = """
fragment OrderMinFields on Order {
  id
  name
  customer {
    id
  }
  customAttributes {
    key
    value
  }
}
"""

ORDER_FRAGMENT = (
    ORDER_MINIMAL_FRAGMENT
    + MAILING_ADDRESS_FRAGMENT
    + MONEY_BAG_FRAGMENT
    + """
fragment OrderFields on Order {
  ...OrderMinFields
  createdAt
  statusPageUrl
  billingAddress {
    ...MailingAddressFields
  }
  shippingAddress {
    ...MailingAddressFields
  }
  deliveryInstructions: metafield(namespace: "checkoutblocks", key: "delivery_instructions") {
    key
    value
  }
  purchaseOrder: metafield(namespace: "checkoutblocks", key: "purchase_order") {
    key
    value
  }
  lineItems(first: 250) {
    edges {
      node {
        id
        name
        sku
        currentQuantity
        discountedUnitPriceSet {
          ...MoneyBagFields
        }
        taxLines {
          priceSet {
            ...MoneyBagFields
          }
          ratePercentage
          title
        }
      }
    }
  }
  shippingLine {
    id
    title
    carrierIdentifier
    code
    deliveryCategory
    source
    discountedPriceSet {
      ...MoneyBagFields
    }
    taxLines {
      priceSet {
        ...MoneyBagFields
      }
      ratePercentage
      title
    }
  }
}
"""
)

ORDER_TRANSACTION_FRAGMENT = (
    MONEY_BAG_FRAGMENT
    + """
fragment OrderTransactionFields on OrderTransaction {
  id
  kind
  status
  amountSet {
    ...MoneyBagFields
  }
  totalUnsettledSet {
    ...MoneyBagFields
  }
  authorizationExpiresAt
}
"""
)

ORDER_WITH_TRANSACTIONS_FRAGMENT = (
    ORDER_TRANSACTION_FRAGMENT
    + """
fragment OrderWithTransactionsFields on Order {
  id
  name
  transactions {
    ...OrderTransactionFields
    parentTransaction {
      ...OrderTransactionFields
    }
  }
}
"""
)

CUSTOMER = ShopifyQuery(
    result_key="customer",
    query=CUSTOMER_FRAGMENT
    + """
query ($id: ID!) {
  customer(id: $id) {
    ...CustomerFields
  }
}
""",
)

COMPANY = ShopifyQuery(
    result_key="company",
    query=COMPANY_FRAGMENT
    + """
query ($id: ID!) {
  company(id: $id) {
    ...CompanyFields
  }
}
""",
)

ORDER_MINIMAL = ShopifyQuery(
    result_key="order",
    query=ORDER_MINIMAL_FRAGMENT
    + """
query ($id: ID!) {
  order(id: $id) {
    ...OrderMinFields
  }
}
""",
)

ORDER = ShopifyQuery(
    result_key="order",
    query=ORDER_FRAGMENT
    + """
query ($id: ID!) {
  order(id: $id) {
    ...OrderFields
  }
}
""",
)

ORDER_WITH_TRANSACTIONS = ShopifyQuery(
    result_key="order",
    query=ORDER_WITH_TRANSACTIONS_FRAGMENT
    + """
query ($id: ID!) {
  order(id: $id) {
    ...OrderWithTransactionsFields
  }
}
""",
)
