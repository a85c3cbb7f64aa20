"""Browser adapter for the SENATRAN portal.

`engine` implements `core.interfaces.portal` with Playwright; `portal_page`
holds the site-specific selectors and parsing. Import `engine` explicitly:
it pulls in Playwright, which `portal_page` alone does not need.
"""
