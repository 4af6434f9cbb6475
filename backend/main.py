"""
PPTX Template Engine - Main Entry Point
Fill a PowerPoint template with machine-vision project data
"""
import argparse
import json
import os
from config import LOG_LEVEL, LOG_FILE, DEFAULT_TEMPLATE_ID, OUTPUT_DIR
from utils.logger import get_logger
from pptx_engine import TemplateEngineError, TemplateGenerator


def main():
    parser = argparse.ArgumentParser(
        description="Fill a PowerPoint template with project, workstation and hardware data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate a deck from a local template and a JSON data file
  python main.py --template templates/vision.pptx --data project.json --output proposal.pptx

  # One copy of every workstation slide per workstation, fail on leftover placeholders
  python main.py -t templates/vision.pptx --data project.json --duplicate-workstation-slides --strict

  # Preview the template's styles or slide inventory as JSON
  python main.py -t https://example.com/template.pptx --styles
  python main.py -t TEMPLATE_ID --analyze
        """
    )

    # Template arguments
    parser.add_argument('--template', '-t', type=str, help='Template id, URL or .pptx path')
    parser.add_argument('--data', '-d', type=str, help='Path to the generation data JSON file')
    parser.add_argument('--output', '-o', type=str, help='Output .pptx path')

    # Generation switches
    parser.add_argument('--duplicate-workstation-slides', action='store_true',
                        help='Replicate workstation/module/hardware slides once per workstation')
    parser.add_argument('--no-smart-replace', action='store_true',
                        help='Only substitute explicit {{placeholders}}')
    parser.add_argument('--no-cover-aware', action='store_true',
                        help='Do not treat the first slide as the cover')
    parser.add_argument('--strict', action='store_true', help='Fail when placeholders remain unresolved')

    # Inspection modes
    parser.add_argument('--styles', action='store_true', help='Print the extracted template styles as JSON')
    parser.add_argument('--analyze', action='store_true', help='Print the analyzed slide inventory as JSON')

    # Logging arguments
    parser.add_argument('--log-level', type=str, default=LOG_LEVEL, help='Logging level (DEBUG, INFO, WARNING, ERROR)')
    parser.add_argument('--log-file', type=str, default=LOG_FILE, help='Log file path')

    args = parser.parse_args()

    # Initialize logger
    logger = get_logger("app", args.log_level, args.log_file)

    template_ref = args.template or DEFAULT_TEMPLATE_ID
    if not template_ref:
        logger.error("No template provided. Use --template or set DEFAULT_TEMPLATE_ID in .env")
        return 1

    generator = TemplateGenerator()

    try:
        if args.styles:
            styles = generator.extract_styles(template_ref)
            print(json.dumps(styles.to_dict(), ensure_ascii=False, indent=2))
            return 0

        if args.analyze:
            slides = generator.analyze(template_ref, cover_aware=not args.no_cover_aware)
            print(json.dumps([s.to_dict() for s in slides], ensure_ascii=False, indent=2))
            return 0

        if not args.data:
            logger.error("Generation data is required. Use --data path/to/data.json")
            return 1

        with open(args.data, 'r', encoding='utf-8') as f:
            data = json.load(f)

        options = {
            'duplicate_workstation_slides': args.duplicate_workstation_slides,
            'enable_smart_replace': not args.no_smart_replace,
            'cover_aware': not args.no_cover_aware,
            'strict_placeholders': args.strict,
        }
        output_path = args.output or os.path.join(OUTPUT_DIR, 'generated.pptx')
        result = generator.generate(template_ref, data, options, os.path.basename(output_path))

        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
        with open(output_path, 'wb') as f:
            f.write(result.content)

        if result.unresolved:
            logger.warning(f"Unresolved placeholders: {', '.join(result.unresolved)}")
        if result.failed_slides:
            logger.warning(f"{len(result.failed_slides)} slide(s) failed and were left as-is")
        logger.info(f"✅ Success! {result.slide_count} slides, {result.replaced_count} replacements, "
                    f"{result.image_count} images -> {output_path}")
        return 0

    except TemplateEngineError as e:
        logger.error(f"{e.kind.value}: {e.message}")
        return 1
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    exit(main())
