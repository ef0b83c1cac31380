"""Contacts, companies and company membership."""

from typing import Annotated, Literal, Optional

from fastmcp import FastMCP
from pydantic import Field

from featurebase_client import FeaturebaseClient
from tools.base import Cursor, PageLimit, call, compact, parse_json

ContactId = Annotated[str, Field(description="Featurebase contact ID (24-character ObjectId)")]
CompanyId = Annotated[str, Field(description="Company Featurebase internal ID")]
ExternalUserId = Annotated[str, Field(description="External user ID from your system")]


def register(mcp: FastMCP, client: FeaturebaseClient) -> None:

    @mcp.tool
    async def list_contacts(
        limit: Annotated[PageLimit, Field(description="Number of contacts to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
        contactType: Annotated[
            Optional[Literal["customer", "lead", "all"]],
            Field(description='Filter by contact type: "customer" (default), "lead", or "all"'),
        ] = None,
    ) -> str:
        """List contacts (customers and leads)."""
        query = {"limit": limit, "cursor": cursor, "contactType": contactType}
        return await call("list_contacts", client.get("/v2/contacts", query))

    @mcp.tool
    async def upsert_contact(
        email: Annotated[Optional[str], Field(description="Contact email address")] = None,
        userId: Annotated[
            Optional[str], Field(description="External user ID from your system. Takes precedence over email.")
        ] = None,
        name: Annotated[Optional[str], Field(description="Contact display name")] = None,
        profilePicture: Annotated[Optional[str], Field(description="Profile picture URL")] = None,
        companies: Annotated[
            Optional[str],
            Field(description='JSON array of company objects. Each must have "id" and "name".'),
        ] = None,
        customFields: Annotated[Optional[str], Field(description="JSON object of custom field values")] = None,
        subscribedToChangelog: Annotated[
            Optional[bool], Field(description="Whether the contact is subscribed to changelog updates")
        ] = None,
        locale: Annotated[Optional[str], Field(description="Contact locale/language preference (e.g. 'en')")] = None,
        phone: Annotated[Optional[str], Field(description="Contact phone number")] = None,
        roles: Annotated[Optional[str], Field(description="JSON array of role IDs to assign to the contact")] = None,
        createdAt: Annotated[
            Optional[str], Field(description="When the contact was created in your system (ISO 8601)")
        ] = None,
    ) -> str:
        """Create or update a contact, matched by userId or email.

        At least one of email or userId must be provided.
        """
        body = compact(
            email=email,
            userId=userId,
            name=name,
            profilePicture=profilePicture,
            companies=parse_json("companies", companies),
            customFields=parse_json("customFields", customFields),
            subscribedToChangelog=subscribedToChangelog,
            locale=locale,
            phone=phone,
            roles=parse_json("roles", roles),
            createdAt=createdAt,
        )
        return await call("upsert_contact", client.post("/v2/contacts", body))

    @mcp.tool
    async def get_contact(id: ContactId) -> str:
        """Get a contact by its Featurebase ID."""
        return await call("get_contact", client.get(f"/v2/contacts/{id}"))

    @mcp.tool
    async def delete_contact(id: ContactId) -> str:
        """Permanently delete a contact (customer or lead). This cannot be undone."""
        return await call("delete_contact", client.delete(f"/v2/contacts/{id}"))

    @mcp.tool
    async def get_contact_by_user_id(userId: ExternalUserId) -> str:
        """Get a customer by their external (SSO) user ID. Leads are not returned."""
        return await call("get_contact_by_user_id", client.get(f"/v2/contacts/by-user-id/{userId}"))

    @mcp.tool
    async def delete_contact_by_user_id(userId: ExternalUserId) -> str:
        """Permanently delete a customer by their external user ID. This cannot be undone."""
        return await call("delete_contact_by_user_id", client.delete(f"/v2/contacts/by-user-id/{userId}"))

    @mcp.tool
    async def block_contact(id: ContactId) -> str:
        """Block a contact from sending new messenger/inbox messages."""
        return await call("block_contact", client.post(f"/v2/contacts/{id}/block"))

    @mcp.tool
    async def unblock_contact(id: ContactId) -> str:
        """Unblock a previously blocked contact."""
        return await call("unblock_contact", client.post(f"/v2/contacts/{id}/unblock"))

    # ----- companies -----

    @mcp.tool
    async def list_companies(
        limit: Annotated[PageLimit, Field(description="Number of companies to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
    ) -> str:
        """List companies in the organization."""
        query = {"limit": limit, "cursor": cursor}
        return await call("list_companies", client.get("/v2/companies", query))

    @mcp.tool
    async def create_company(
        companyId: Annotated[str, Field(description="External company ID from your system (used for upsert)")],
        name: Annotated[str, Field(description="Company name")],
        monthlySpend: Annotated[Optional[float], Field(description="Monthly spend/revenue from this company")] = None,
        industry: Annotated[Optional[str], Field(description="Industry the company operates in")] = None,
        website: Annotated[Optional[str], Field(description="Company website URL")] = None,
        plan: Annotated[Optional[str], Field(description="Current plan/subscription name")] = None,
        companySize: Annotated[Optional[int], Field(description="Number of employees in the company")] = None,
        createdAt: Annotated[Optional[str], Field(description="When the company was created (ISO 8601)")] = None,
    ) -> str:
        """Create a company, or update the one with the same external companyId."""
        body = compact(
            companyId=companyId,
            name=name,
            monthlySpend=monthlySpend,
            industry=industry,
            website=website,
            plan=plan,
            companySize=companySize,
            createdAt=createdAt,
        )
        return await call("create_company", client.post("/v2/companies", body))

    @mcp.tool
    async def get_company(id: CompanyId) -> str:
        """Get a company by its Featurebase ID."""
        return await call("get_company", client.get(f"/v2/companies/{id}"))

    @mcp.tool
    async def delete_company(id: CompanyId) -> str:
        """Permanently delete a company and unlink it from its users."""
        return await call("delete_company", client.delete(f"/v2/companies/{id}"))

    @mcp.tool
    async def list_company_contacts(
        id: CompanyId,
        limit: Annotated[PageLimit, Field(description="Number of contacts to return (1-100, default 10)")] = None,
        cursor: Cursor = None,
    ) -> str:
        """List the contacts attached to a company."""
        query = {"limit": limit, "cursor": cursor}
        return await call("list_company_contacts", client.get(f"/v2/companies/{id}/contacts", query))

    @mcp.tool
    async def add_company_contact(
        id: CompanyId,
        contactId: Annotated[str, Field(description="Featurebase internal ID of the contact to attach")],
    ) -> str:
        """Attach a contact to a company. Existing associations are kept."""
        return await call(
            "add_company_contact",
            client.post(f"/v2/companies/{id}/contacts", {"contactId": contactId}),
        )

    @mcp.tool
    async def remove_company_contact(
        id: CompanyId,
        contactId: Annotated[str, Field(description="Featurebase internal ID of the contact to remove")],
    ) -> str:
        """Detach a contact from a company."""
        return await call("remove_company_contact", client.delete(f"/v2/companies/{id}/contacts/{contactId}"))
