import logging
import os

from query_shaper.api.app import create_app
from query_shaper.models.config import ShaperConfig

logging.basicConfig(
    level=os.getenv("QUERY_SHAPER_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

config = ShaperConfig.from_env()
app = create_app(config)

if __name__ == "__main__":
    import uvicorn
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "5000"))
    logging.getLogger("query_shaper").info(
        "Query shaper on http://%s:%d/graphql -> %s (snapshot: %s)",
        host, port, config.backend_url, config.snapshot_path,
    )
    uvicorn.run(app, host=host, port=port)
