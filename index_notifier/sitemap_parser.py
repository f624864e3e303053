import logging
from typing import List, Union

from lxml import etree

from index_notifier.exceptions import SitemapParseError

logger = logging.getLogger(__name__)

SITEMAP_NS = 'http://www.sitemaps.org/schemas/sitemap/0.9'

# local-name() matches both the sitemap namespace and un-namespaced documents
URL_LOC_XPATH = "./*[local-name()='url']/*[local-name()='loc']"


class SitemapParser:
    def __init__(self):
        # No entity resolution or network access while parsing remote XML
        self._xml_parser = etree.XMLParser(
            remove_blank_text=True, resolve_entities=False, no_network=True
        )
        # Already-decoded text is re-encoded as UTF-8, whatever its declaration says
        self._text_parser = etree.XMLParser(
            remove_blank_text=True, resolve_entities=False, no_network=True,
            encoding='utf-8',
        )

    def parse_sitemap(self, xml_content: Union[str, bytes], sitemap_url: str = "") -> List[str]:
        """
        Parses a urlset sitemap into its <loc> URLs, in document order.

        Args:
            xml_content: The XML content of the sitemap.
            sitemap_url: The URL from which this sitemap was fetched (for logging/context).

        Returns:
            The list of page URLs. Empty if the document is empty or its root
            is not a <urlset> (sitemap indexes are not followed).

        Raises:
            SitemapParseError: if the document is not well-formed XML.
        """
        parser = self._xml_parser
        if isinstance(xml_content, str):
            xml_content = xml_content.encode('utf-8')
            parser = self._text_parser
        if not xml_content or not xml_content.strip():
            logger.warning(f"Empty XML content (from {sitemap_url}).")
            return []

        try:
            root = etree.fromstring(xml_content, parser=parser)
        except etree.XMLSyntaxError as e:
            raise SitemapParseError(f"XML syntax error in sitemap {sitemap_url}: {e}") from e

        root_tag_name = etree.QName(root.tag).localname
        if root_tag_name != 'urlset':
            logger.warning(
                f"Root element is <{root_tag_name}>, not <urlset>, in {sitemap_url}. No URLs extracted."
            )
            return []

        urls = []
        for loc_element in root.xpath(URL_LOC_XPATH):
            if loc_element.text and loc_element.text.strip():
                urls.append(loc_element.text.strip())
            else:
                logger.warning(f"Skipping empty <loc> in {sitemap_url}")
        logger.debug(f"Extracted {len(urls)} URL entries from urlset.")
        return urls


# Example usage (for testing this module directly)
if __name__ == '__main__':
    logging.basicConfig(level=logging.DEBUG,
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    urlset_xml = f"""<?xml version="1.0" encoding="UTF-8"?>
    <urlset xmlns="{SITEMAP_NS}">
       <url><loc>http://www.example.com/newest</loc></url>
       <url><loc>http://www.example.com/older</loc><lastmod>2005-01-01</lastmod></url>
    </urlset>
    """
    logger.info(SitemapParser().parse_sitemap(urlset_xml, "http://test.com/urlset.xml"))
