"""
atcoder_service.py — AtCoder Judge Client
Scrapes contest listings, task pages, editorials and user pages from atcoder.jp
with BeautifulSoup. Every public method logs and returns None / [] on failure.
"""

import asyncio
import logging
import re

import httpx
from bs4 import BeautifulSoup

from config import ATCODER_BASE_URL, SCRAPER_USER_AGENT

logger = logging.getLogger(__name__)

# Seconds between archive page requests
ARCHIVE_PAGE_DELAY = 1.0


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=15,
        follow_redirects=True,
        headers={
            "User-Agent": SCRAPER_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5,ja;q=0.3",
        },
    )


async def _fetch_html(url: str) -> str | None:
    async with _http_client() as client:
        resp = await client.get(url)
    if resp.status_code != 200:
        logger.warning(f"GET {url} returned HTTP {resp.status_code}")
        return None
    return resp.text


def _absolute(href: str) -> str:
    return href if href.startswith("http") else f"{ATCODER_BASE_URL}{href}"


def _inner_html(tag) -> str | None:
    return tag.decode_contents() if tag is not None else None


def is_atcoder_url(url: str) -> bool:
    return url.startswith(f"{ATCODER_BASE_URL}/")


def contest_url_from_task_url(task_url: str) -> str:
    return task_url.split("/tasks/")[0]


def task_index_from_url(task_url: str) -> str:
    """"https://atcoder.jp/contests/abc400/tasks/abc400_c" -> "c"."""
    return task_url.rstrip("/").split("_")[-1].lower()


class AtCoderService:

    # ------------------------------------------------------------------
    # Contests
    # ------------------------------------------------------------------
    @staticmethod
    def _parse_contest_table(soup: BeautifulSoup, table_id: str) -> list:
        contests = []
        for row in soup.select(f"#{table_id} tbody tr"):
            cells = row.find_all("td")
            if len(cells) < 4:
                continue
            link = cells[1].find("a", href=True)
            if link is None:
                continue
            time_tag = cells[0].find("time")
            contests.append({
                "name": link.get_text(strip=True),
                "url": _absolute(link["href"]),
                "start_time": (time_tag or cells[0]).get_text(strip=True),
                "duration": cells[2].get_text(strip=True),
                "rated_range": cells[3].get_text(strip=True),
            })
        return contests

    @staticmethod
    async def _get_contests(table_id: str) -> list:
        try:
            html = await _fetch_html(f"{ATCODER_BASE_URL}/contests/?lang=en")
            if html is None:
                return []
            return AtCoderService._parse_contest_table(BeautifulSoup(html, "html.parser"), table_id)
        except Exception as e:
            logger.error(f"Failed to fetch contests ({table_id}): {e}")
            return []

    @staticmethod
    async def get_upcoming_contests() -> list:
        return await AtCoderService._get_contests("contest-table-upcoming")

    @staticmethod
    async def get_recent_contests() -> list:
        return await AtCoderService._get_contests("contest-table-recent")

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    @staticmethod
    async def get_task_link_list(contest_url: str) -> list:
        """Absolute task URLs listed on `{contest_url}/tasks`."""
        try:
            html = await _fetch_html(f"{contest_url.rstrip('/')}/tasks")
            if html is None:
                return []
            soup = BeautifulSoup(html, "html.parser")
            links = []
            for row in soup.select("table.table-bordered.table-striped tbody tr"):
                anchor = row.select_one("td a[href]")
                if anchor is not None:
                    links.append(_absolute(anchor["href"]))
            return links
        except Exception as e:
            logger.error(f"Failed to fetch task list for {contest_url}: {e}")
            return []

    # The archive crawler and the chat tool share the same listing
    get_contest_problems = get_task_link_list

    @staticmethod
    async def get_task_metadata(task_url: str) -> dict | None:
        """Title plus the English statement sections of a task page.

        Returns {title, problem_statement, constraint, input, output,
        samples: [{input, output}], task_url} or None.
        """
        try:
            html = await _fetch_html(task_url)
            if html is None:
                return None
            soup = BeautifulSoup(html, "html.parser")

            title_tag = soup.select_one("span.h2")
            title = next(title_tag.stripped_strings, "") if title_tag else ""
            lang_en = soup.select_one("#task-statement span.lang-en")
            if not title or lang_en is None:
                logger.warning(f"Task page layout not recognised: {task_url}")
                return None

            sections: dict[str, str] = {}
            sample_inputs: list[str] = []
            sample_outputs: list[str] = []
            for section in lang_en.select("div.part > section"):
                heading = section.find("h3")
                name = heading.get_text(strip=True) if heading else ""
                body = section.decode_contents()
                if name.startswith("Sample Input"):
                    sample_inputs.append(body)
                elif name.startswith("Sample Output"):
                    sample_outputs.append(body)
                elif name:
                    sections[name] = body

            statement = sections.get("Problem Statement")
            if not statement:
                logger.warning(f"No English statement on {task_url}")
                return None

            return {
                "title": title,
                "problem_statement": statement,
                "constraint": sections.get("Constraints"),
                "input": sections.get("Input"),
                "output": sections.get("Output"),
                "samples": [
                    {"input": i, "output": o}
                    for i, o in zip(sample_inputs, sample_outputs)
                ],
                "task_url": task_url,
            }
        except Exception as e:
            logger.error(f"Failed to fetch task metadata for {task_url}: {e}")
            return None

    @staticmethod
    async def get_editorial(task_url: str) -> str | None:
        """Editorial body HTML for a task, found through the contest's editorial index."""
        try:
            contest_url = contest_url_from_task_url(task_url)
            html = await _fetch_html(f"{contest_url}/editorial")
            if html is None:
                return None
            soup = BeautifulSoup(html, "html.parser")

            index = task_index_from_url(task_url).upper()
            href = None
            for heading in soup.select("#main-container h3"):
                label = heading.get_text(" ", strip=True)
                if not (label == index or label.startswith(f"{index} ")):
                    continue
                listing = heading.find_next_sibling("ul")
                anchor = listing.select_one('li a[href*="/editorial/"]') if listing else None
                if anchor is not None:
                    href = anchor["href"]
                break

            if href is None:
                logger.info(f"No editorial link for {task_url}")
                return None

            body_html = await _fetch_html(_absolute(href))
            if body_html is None:
                return None
            body = BeautifulSoup(body_html, "html.parser").select_one(
                "#main-container > div.row > div:nth-child(2) > div:nth-child(4)"
            )
            if body is None:
                logger.warning(f"Editorial page layout not recognised: {href}")
                return None
            return body.decode_contents()
        except Exception as e:
            logger.error(f"Failed to fetch editorial for {task_url}: {e}")
            return None

    @staticmethod
    async def get_problem_page(url: str) -> dict | None:
        """Statement HTML of a task page in English, Japanese and untouched form."""
        if not is_atcoder_url(url):
            return None
        try:
            html = await _fetch_html(url)
            if html is None:
                return None
            soup = BeautifulSoup(html, "html.parser")

            title_tag = soup.select_one("span.h2")
            title = title_tag.get_text(strip=True) if title_tag else ""

            # "Time Limit: 2 sec / Memory Limit: 1024 MiB" sits on one line
            time_limit = ""
            for p in soup.find_all("p"):
                text = p.get_text(strip=True)
                if "Time Limit" in text:
                    time_limit = text
                    break

            statement = soup.select_one("#task-statement")
            if statement is not None:
                for p in statement.find_all("p"):
                    if "Time Limit" in p.get_text():
                        p.decompose()

            return {
                "title": title,
                "time_limit": time_limit,
                "memory_limit": "",
                "content": {
                    "en": _inner_html(soup.select_one("#task-statement .lang-en")),
                    "ja": _inner_html(soup.select_one("#task-statement .lang-ja")),
                    "full": _inner_html(statement),
                },
                "url": url,
            }
        except Exception as e:
            logger.error(f"Failed to fetch problem page {url}: {e}")
            return None

    # ------------------------------------------------------------------
    # Archive crawl
    # ------------------------------------------------------------------
    @staticmethod
    async def get_all_contest_links(limit: int | None = None, start_from: int = 0) -> list:
        """Walk the contest archive page by page.

        Collects `start_from + limit` links (everything when limit is None)
        and returns those after `start_from`.
        """
        links: list[str] = []
        needed = start_from + limit if limit else None
        page = 1

        while needed is None or len(links) < needed:
            url = f"{ATCODER_BASE_URL}/contests/archive"
            if page > 1:
                url += f"?page={page}"
            try:
                html = await _fetch_html(url)
            except Exception as e:
                logger.error(f"Error fetching archive page {page}: {e}")
                break
            if html is None:
                break

            rows = BeautifulSoup(html, "html.parser").select("#main-container table tbody tr")
            if not rows:
                break

            for row in rows:
                if needed is not None and len(links) >= needed:
                    break
                anchor = row.select_one("td:nth-of-type(2) a[href]")
                if anchor is not None:
                    links.append(_absolute(anchor["href"]))

            logger.info(f"Archive page {page}: {len(rows)} contests (total {len(links)})")
            page += 1
            await asyncio.sleep(ARCHIVE_PAGE_DELAY)

        return links[start_from:]

    @staticmethod
    async def get_problem_info(problem_url: str) -> dict | None:
        """Title and a 200-character one-line summary of a task."""
        try:
            html = await _fetch_html(problem_url)
            if html is None:
                return None
            soup = BeautifulSoup(html, "html.parser")

            title_tag = soup.select_one("span.h2")
            title = next(title_tag.stripped_strings, "") if title_tag else ""
            if not title:
                return None

            statement = soup.select_one("#task-statement span.lang-en div.part > section")
            text = statement.get_text().strip() if statement else ""
            summary = re.sub(r"\s+", " ", text[:200])
            return {"title": title, "summary": summary or "No summary available"}
        except Exception as e:
            logger.error(f"Failed to fetch problem info for {problem_url}: {e}")
            return None

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------
    @staticmethod
    async def fetch_user_info(handle: str) -> dict | None:
        """Canonical user name and current rating from the profile page."""
        try:
            html = await _fetch_html(f"{ATCODER_BASE_URL}/users/{handle}?lang=en")
            if html is None:
                return None
            soup = BeautifulSoup(html, "html.parser")

            name_tag = soup.select_one("a.username span") or soup.select_one("a.username")
            if name_tag is None:
                return None

            rating = 0
            for row in soup.select("table.dl-table tr"):
                th = row.find("th")
                if th is not None and th.get_text(strip=True) == "Rating":
                    digits = re.search(r"\d+", row.find("td").get_text())
                    rating = int(digits.group()) if digits else 0
                    break

            return {"user_name": name_tag.get_text(strip=True), "rating": rating}
        except Exception as e:
            logger.error(f"Failed to fetch user info for {handle}: {e}")
            return None

    @staticmethod
    async def get_rating_history(handle: str) -> list:
        """Rated contest results, oldest first, with the rating increment."""
        try:
            async with _http_client() as client:
                resp = await client.get(f"{ATCODER_BASE_URL}/users/{handle}/history/json")
                resp.raise_for_status()
                data = resp.json()
        except Exception as e:
            logger.error(f"Failed to fetch rating history for {handle}: {e}")
            return []

        history = [
            {
                "contest_screen_name": entry.get("ContestScreenName"),
                "contest_name": entry.get("ContestName") or entry.get("ContestNameEn"),
                "new_rating": entry.get("NewRating"),
                "old_rating": entry.get("OldRating"),
                "performance": entry.get("Performance"),
                "increment": entry.get("NewRating", 0) - entry.get("OldRating", 0),
                "end_time": entry.get("EndTime"),
                "place": entry.get("Place"),
            }
            for entry in data
            if entry.get("IsRated")
        ]
        history.sort(key=lambda e: e["end_time"] or "")
        return history
