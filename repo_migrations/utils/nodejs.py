import requests

NODE_DIST_INDEX_URL = "https://nodejs.org/dist/index.json"


def get_latest_node_version(
    session: requests.Session | None = None,
    url: str = NODE_DIST_INDEX_URL,
    timeout: int = 30,
) -> str:
    """Newest LTS release listed in the node.js distribution index, e.g. v22.11.0"""
    getter = session or requests
    response = getter.get(url, timeout=timeout)
    response.raise_for_status()
    for release in response.json():
        if release.get("lts"):
            return release["version"]
    raise ValueError("No LTS version found")
