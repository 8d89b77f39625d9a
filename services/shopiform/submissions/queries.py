"""GraphQL documents sent to the Shopify Admin API."""

ADDRESS_SELECTION = """
    firstName
    lastName
    address1
    address2
    city
    province
    zip
    country
    phone
"""

COMPANY_CREATE = f"""
mutation CompanyCreate($input: CompanyCreateInput!) {{
  companyCreate(input: $input) {{
    company {{
      id
      name
      externalId
      mainContact {{
        id
        customer {{
          id
          email
          firstName
          lastName
        }}
      }}
      locations(first: 5) {{
        edges {{
          node {{
            id
            name
            shippingAddress {{ {ADDRESS_SELECTION} }}
            billingAddress {{ {ADDRESS_SELECTION} }}
          }}
        }}
      }}
    }}
    userErrors {{
      field
      message
      code
    }}
  }}
}}
"""

CUSTOMER_CREATE = """
mutation customerCreate($input: CustomerInput!) {
  customerCreate(input: $input) {
    customer {
      id
      email
      firstName
      lastName
      phone
      tags
      note
      addresses {
        id
        address1
        address2
        city
        province
        zip
        country
        company
      }
    }
    userErrors {
      field
      message
    }
  }
}
"""

CUSTOMER_UPDATE = """
mutation customerUpdate($input: CustomerInput!) {
  customerUpdate(input: $input) {
    customer {
      id
      email
      firstName
      lastName
      phone
      tags
      note
    }
    userErrors {
      field
      message
    }
  }
}
"""
