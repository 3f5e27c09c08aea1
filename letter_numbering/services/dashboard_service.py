"""
services/dashboard_service.py
-----------------------------
Summary figures for the landing page, computed from the caller's scoped
view of the workspace.
"""

from datetime import date
from typing import List, Optional

from letter_numbering.domain.allocator import reference_preview
from letter_numbering.domain.reference import parse_sequence
from letter_numbering.domain.scope import AccessScope
from letter_numbering.domain.state import Workspace, as_aware
from letter_numbering.schemas.letter import LetterRead
from letter_numbering.schemas.workspace import CompanyPreview, DashboardRead

PREVIEW_COMPANIES = 4
LATEST_LETTERS = 5


class DashboardService:

    @staticmethod
    def year_options(workspace: Workspace, scope: AccessScope, today: Optional[date] = None) -> List[int]:
        """Years with visible letters, newest first; the current year is always offered."""
        scope.require_ready()
        years = sorted(
            {letter.year for letter in scope.filter_letters(workspace.state.letters) if letter.year},
            reverse=True,
        )
        current_year = (today or date.today()).year
        if current_year not in years:
            years.insert(0, current_year)
        return years

    @staticmethod
    def dashboard(workspace: Workspace, scope: AccessScope, today: Optional[date] = None) -> DashboardRead:
        scope.require_ready()
        state = workspace.state
        current_year = (today or date.today()).year
        letters = scope.filter_letters(state.letters)
        companies = scope.filter_companies(state.companies)

        recipients = {letter.recipient_company for letter in letters if letter.recipient_company}
        latest = sorted(
            letters,
            key=lambda letter: (as_aware(letter.sort_date), parse_sequence(letter.reference_number)),
            reverse=True,
        )[:LATEST_LETTERS]

        return DashboardRead(
            total_letters=len(letters),
            letters_this_year=sum(1 for letter in letters if letter.year == current_year),
            unique_recipients=len(recipients),
            next_references=[
                CompanyPreview(
                    company_id=company.id,
                    name=company.name,
                    abbreviation=company.abbreviation,
                    color=company.color,
                    next_reference=reference_preview(state, scope, company.id, current_year),
                )
                for company in companies[:PREVIEW_COMPANIES]
            ],
            latest_letters=[LetterRead.model_validate(letter) for letter in latest],
        )
