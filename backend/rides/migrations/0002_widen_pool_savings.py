from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('rides', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='poolsuggestion',
            name='savings',
            field=models.DecimalField(decimal_places=2, max_digits=8),
        ),
    ]
