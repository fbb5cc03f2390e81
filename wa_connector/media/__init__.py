# Media
# Outbound media download for URL-based media messages

from wa_connector.media.fetcher import MediaFetcher, filename_from_url

__all__ = ["MediaFetcher", "filename_from_url"]
