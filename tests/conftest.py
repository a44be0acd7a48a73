"""Shared fixtures: an in-process GraphQL backend behind httpx.MockTransport."""

import json

import httpx
import pytest
from graphql import build_schema, graphql_sync

SCHEMA = build_schema("""
    type Address {
      city: String
      street: String
      zip: String
    }

    type Post {
      title: String
      body: String
    }

    type User {
      id: ID
      name: String
      email: String
      phone: String
      address: Address
      posts: [Post]
    }

    type Query {
      user(id: ID): User
      users: [User]
    }

    type Mutation {
      updateUser(name: String): User
    }
""")

USER = {
    "id": "1",
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "phone": "+44 20 0000 0000",
    "address": {"city": "London", "street": "St James's Square", "zip": "SW1Y"},
    "posts": [{"title": "Notes", "body": "On the Analytical Engine"}],
}


class FakeGraphQLBackend:
    """Executes forwarded queries against SCHEMA and remembers what it was sent."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.root_value = {"user": USER, "users": [USER], "updateUser": USER}
        self.transport = httpx.MockTransport(self._handle)

    @property
    def queries(self):
        return [r["query"] for r in self.requests]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        self.requests.append(payload)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "upstream failure"})

        result = graphql_sync(
            SCHEMA,
            payload["query"],
            root_value=self.root_value,
            variable_values=payload.get("variables"),
        )
        return httpx.Response(200, json=result.formatted)


@pytest.fixture
def graphql_backend():
    return FakeGraphQLBackend()
