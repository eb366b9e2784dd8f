from django.core.management import call_command
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = "Seeds the database with demo data (wraps create_demo_entity)."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--entity",  # Define flag
            type=str,
            default="Demo Traders",
            help="Name of the demo entity (default: Demo Traders)",
        )

    def handle(self, *args, **options):
        entity_name = options["entity"]  # Read argument from add_arguments()

        self.stdout.write(self.style.NOTICE(
            f"Seeding demo data for {entity_name}..."))
        call_command("create_demo_entity", entity_name=entity_name)
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
