import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.normalize.normalize_resume import (  # noqa: E402
    calculate_experience_years,
    extract_skills,
    normalize_parser_payload,
)


class NormalizationTests(unittest.TestCase):
    def test_name_and_full_name_map_to_the_same_field(self):
        first = normalize_parser_payload({"name": "Jane Doe", "email": "jane@example.com"})
        second = normalize_parser_payload({"full_name": "Jane Doe", "email": "jane@example.com"})
        self.assertEqual(first.personal_info.name, "Jane Doe")
        self.assertEqual(first.personal_info, second.personal_info)

    def test_alias_fields_and_social_links(self):
        resume = normalize_parser_payload(
            {
                "full_name": "Sam Lee",
                "phone_number": "+1 555 0100",
                "address": "Berlin",
                "website": "https://sam.dev",
                "social_links": {"linkedin": "https://linkedin.com/in/sam"},
                "objective": "Backend engineer",
            }
        )
        info = resume.personal_info
        self.assertEqual(info.phone, "+1 555 0100")
        self.assertEqual(info.location, "Berlin")
        self.assertEqual(info.portfolio, "https://sam.dev")
        self.assertEqual(info.linkedin, "https://linkedin.com/in/sam")
        self.assertEqual(resume.summary, "Backend engineer")

    def test_nested_contact_block_is_read(self):
        resume = normalize_parser_payload(
            {"personal_info": {"name": "Ada", "email": "ada@example.com"}, "skills": ["Python"]}
        )
        self.assertEqual(resume.personal_info.name, "Ada")
        self.assertEqual(resume.personal_info.email, "ada@example.com")

    def test_envelope_is_unwrapped(self):
        resume = normalize_parser_payload({"data": {"name": "Wrapped", "skills": "python, sql"}})
        self.assertEqual(resume.personal_info.name, "Wrapped")
        self.assertEqual(resume.skills.all, ["python", "sql"])

    def test_skill_shapes(self):
        from_list = normalize_parser_payload({"skills": ["Python", "SQL", "python"]})
        self.assertEqual(from_list.skills.all, ["Python", "SQL"])

        from_dict = normalize_parser_payload({"skills": {"technical": ["Docker"], "soft": ["Mentoring"]}})
        self.assertEqual(from_dict.skills.technical, ["Docker"])
        self.assertEqual(from_dict.skills.soft, ["Mentoring"])
        self.assertEqual(from_dict.skills.all, ["Docker", "Mentoring"])

        fallback = normalize_parser_payload({"technical_skills": ["Go"], "soft_skills": "Leadership"})
        self.assertEqual(fallback.skills.technical, ["Go"])
        self.assertEqual(fallback.skills.soft, ["Leadership"])
        self.assertEqual(extract_skills(fallback), ["Go", "Leadership"])

    def test_experience_and_education_aliases(self):
        resume = normalize_parser_payload(
            {
                "experience": [
                    {
                        "position": "Engineer",
                        "organization": "Acme",
                        "from": "2020-01",
                        "to": "2022-01",
                        "responsibilities": ["Built APIs", "Ran on-call"],
                        "duration": "24 months",
                    },
                    {"title": "Intern", "company": "Beta", "dates": {"start": "2019-06", "end": "2019-12"}},
                ],
                "education": {"qualification": "BSc", "university": "TU Berlin", "year": "2019"},
            }
        )
        first, second = resume.experience
        self.assertEqual(first.title, "Engineer")
        self.assertEqual(first.company, "Acme")
        self.assertEqual(first.start_date, "2020-01")
        self.assertEqual(first.description, "Built APIs\nRan on-call")
        self.assertEqual(second.start_date, "2019-06")
        self.assertEqual(second.end_date, "2019-12")

        self.assertEqual(len(resume.education), 1)
        self.assertEqual(resume.education[0].degree, "BSc")
        self.assertEqual(resume.education[0].institution, "TU Berlin")
        self.assertEqual(resume.education[0].graduation_date, "2019")

    def test_experience_years_prefers_reported_total(self):
        reported = normalize_parser_payload({"total_experience": "6.5 years", "experience": [{"duration": "12"}]})
        self.assertEqual(reported.total_experience_years, 6.5)

        summed = normalize_parser_payload({"experience": [{"duration": "18"}, {"duration": "20 months"}]})
        self.assertEqual(summed.total_experience_years, 3.0)
        self.assertEqual(calculate_experience_years(summed), 3.0)

    def test_missing_values_become_empty_not_none(self):
        resume = normalize_parser_payload({"name": None, "certifications": None, "languages": "English"})
        self.assertEqual(resume.personal_info.name, "")
        self.assertEqual(resume.personal_info.email, "")
        self.assertEqual(resume.certifications, [])
        self.assertEqual(resume.languages, ["English"])
        self.assertEqual(resume.experience, [])

    def test_raw_payload_is_kept_verbatim(self):
        payload = {"name": "Raw", "custom_vendor_field": {"score": 7}}
        resume = normalize_parser_payload(payload)
        self.assertEqual(resume.raw_upstream_payload, payload)

    def test_non_mapping_payload_yields_empty_resume(self):
        resume = normalize_parser_payload(None)
        self.assertEqual(resume.personal_info.name, "")
        self.assertEqual(resume.skills.all, [])
        self.assertEqual(resume.raw_upstream_payload, {})


if __name__ == "__main__":
    unittest.main()
